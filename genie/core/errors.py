"""
Genie error types.

Per-target errors (load, generation, check) are caught by the orchestrator
and turned into failed outcomes. Only ``GenerationFailedError`` and
``DuplicateTargetError`` escape a run.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from genie.core.engine.orchestrator import RunReport


def safe_error_string(error: BaseException) -> str:
    """``str(error)`` that cannot itself raise."""
    try:
        return str(error) or type(error).__name__
    except Exception:
        return f"[{type(error).__name__}]"


class GenieError(Exception):
    """Base class for all genie errors."""


class TemplateLoadError(GenieError):
    """A template failed to import or exported the wrong shape.

    ``cause`` is the original exception; ``origin_trace`` is its formatted
    traceback and ``origin_frames`` the template or helper source files it
    passed through (outermost first). Both are captured at wrap time for
    root-cause attribution.
    """

    def __init__(
        self,
        template_path: Path,
        message: str,
        cause: BaseException,
        origin_trace: str = "",
        origin_frames: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.template_path = template_path
        self.message = message
        self.cause = cause
        self.origin_trace = origin_trace
        self.origin_frames = origin_frames


class GenerationError(GenieError):
    """Any failure while producing or writing one target."""

    def __init__(self, target_path: Path, message: str, cause: BaseException) -> None:
        super().__init__(message)
        self.target_path = target_path
        self.message = message
        self.cause = cause


class CheckError(GenieError):
    """A generated file is missing or out of date."""

    def __init__(self, target_path: Path, message: str) -> None:
        super().__init__(message)
        self.target_path = target_path
        self.message = message


class DuplicateTargetError(GenieError):
    """Two templates resolve to the same target file."""

    def __init__(self, duplicates: dict[Path, int]) -> None:
        listing = ", ".join(f"{target} ({count}x)" for target, count in sorted(duplicates.items()))
        super().__init__(f"Duplicate genie targets detected: {listing}")
        self.duplicates = duplicates


class GenerationFailedError(GenieError):
    """Raised after a whole batch when at least one target failed."""

    def __init__(self, report: RunReport) -> None:
        super().__init__(report.failure_message)
        self.report = report
