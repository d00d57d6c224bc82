"""
Cascade diagnosis — find the template that really broke a run.

When a shared helper module raises during its own initialization, only the
first template to import it sees the real exception. Every later importer
gets ``UninitializedModuleError`` ("cannot access ... before
initialization") from the poisoned module cache instead. Under concurrent
generation, which template wins that race is arbitrary.

Diagnosis therefore re-runs the failed templates one at a time, in sorted
order, after invalidating the module cache. A template is a root cause
only when the deepest template or helper frame of its re-run traceback is
the template itself. Importers of a failing module show up in that
traceback too, but never as its deepest frame. Everything else is a
dependent.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from genie.core.errors import CheckError, TemplateLoadError, safe_error_string
from genie.core.models.outcome import CascadeFinding, GenerationOutcome
from genie.core.models.template import target_path_for
from genie.core.services.import_map import ModuleCache
from genie.core.services.template_loader import source_frames

logger = logging.getLogger(__name__)

CASCADE_PATTERN = re.compile(
    r"cannot access .+ before initialization|partially initialized module",
    re.IGNORECASE,
)


def is_cascade_error(error: BaseException | None) -> bool:
    """Whether ``error`` is the symptom of an earlier failed module init."""
    if not isinstance(error, (ImportError, NameError)):
        return False
    return CASCADE_PATTERN.search(safe_error_string(error)) is not None


def origin_file(error: BaseException, cache: ModuleCache | None = None) -> str | None:
    """Template or helper file in which ``error`` was raised, if any."""
    if isinstance(error, TemplateLoadError) and error.origin_frames:
        frames = error.origin_frames
    else:
        frames = source_frames(error, cache)
    return frames[-1] if frames else None


def error_originates_in_file(
    error: BaseException | None,
    file_path: Path | str,
    cache: ModuleCache | None = None,
) -> bool:
    """Attribute ``error`` to the template at ``file_path``.

    Cascade errors never originate in the file that merely observed them.
    A check failure belongs to the template of its target. Any other error
    originates in ``file_path`` when that is its deepest template or helper
    frame; an error with no such frame was raised by genie while handling
    the template itself.
    """
    if error is None or is_cascade_error(error):
        return False
    if isinstance(error, CheckError):
        return Path(error.target_path) == target_path_for(Path(file_path))
    origin = origin_file(error, cache)
    if origin is None:
        return True
    return Path(origin) == Path(file_path)


def has_cascade_failures(outcomes: Iterable[GenerationOutcome]) -> bool:
    return any(o.failed and is_cascade_error(o.cause) for o in outcomes)


def diagnose(
    failed: Iterable[GenerationOutcome],
    task: Callable[[Path], GenerationOutcome],
    cache: ModuleCache,
) -> list[CascadeFinding]:
    """Re-run failed templates sequentially and attribute each failure.

    Args:
        failed: Failed outcomes of the concurrent pass.
        task: Non-writing per-template function (dry-run generate, or check).
        cache: Module cache, invalidated once before the re-run.

    Returns:
        One finding per failed template, in sorted template order.
    """
    failed = sorted((o for o in failed if o.failed), key=lambda o: str(o.template_path))
    cache.invalidate()

    findings: list[CascadeFinding] = []
    for original in failed:
        rerun = task(original.template_path)
        if rerun.failed:
            is_root = error_originates_in_file(rerun.cause, original.template_path, cache)
            error = rerun.error or ""
            if not is_root and rerun.cause is not None and not is_cascade_error(rerun.cause):
                logger.warning(
                    "%s failed in %s: %s",
                    original.target_path,
                    origin_file(rerun.cause, cache),
                    error,
                )
        else:
            # Passed on its own: its first failure came from a sibling.
            is_root = False
            error = original.error or ""
        findings.append(
            CascadeFinding(
                template_path=original.template_path,
                target_path=original.target_path,
                error=error,
                is_root_cause=is_root,
            )
        )
        logger.debug(
            "Diagnosed %s: %s",
            original.target_path,
            "root cause" if is_root else "dependent",
        )

    return findings


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def cascade_message(findings: Iterable[CascadeFinding]) -> str:
    """``"1 root cause, 2 dependent failures"``."""
    findings = list(findings)
    roots = sum(1 for f in findings if f.is_root_cause)
    return f"{_plural(roots, 'root cause')}, {_plural(len(findings) - roots, 'dependent failure')}"
