"""
Outcome models — what happened to each target during a run.

One ``GenerationOutcome`` is produced per target per run. Failures are
captured here instead of being raised, so one broken template never hides
the results of its siblings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

OutcomeStatus = Literal["created", "updated", "unchanged", "skipped", "failed"]


class GenerationOutcome(BaseModel):
    """Result of generating (or checking) one target.

    ``cause`` is the underlying exception used for cascade diagnosis. It is
    only unwrapped from template load errors; every other failure keeps the
    generation error itself.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    template_path: Path
    target_path: Path
    status: OutcomeStatus

    reason: str = ""                  # skip reason
    diff_summary: str | None = None   # updated only
    error: str | None = None          # failed only
    cause: BaseException | None = Field(default=None, exclude=True, repr=False)

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def created(cls, template_path: Path, target_path: Path) -> GenerationOutcome:
        return cls(template_path=template_path, target_path=target_path, status="created")

    @classmethod
    def updated(
        cls,
        template_path: Path,
        target_path: Path,
        diff_summary: str | None = None,
    ) -> GenerationOutcome:
        return cls(
            template_path=template_path,
            target_path=target_path,
            status="updated",
            diff_summary=diff_summary,
        )

    @classmethod
    def unchanged(cls, template_path: Path, target_path: Path) -> GenerationOutcome:
        return cls(template_path=template_path, target_path=target_path, status="unchanged")

    @classmethod
    def skip(cls, template_path: Path, target_path: Path, reason: str) -> GenerationOutcome:
        return cls(
            template_path=template_path,
            target_path=target_path,
            status="skipped",
            reason=reason,
        )

    @classmethod
    def failure(
        cls,
        template_path: Path,
        target_path: Path,
        error: str,
        cause: BaseException | None = None,
    ) -> GenerationOutcome:
        return cls(
            template_path=template_path,
            target_path=target_path,
            status="failed",
            error=error,
            cause=cause,
        )


class CascadeFinding(BaseModel):
    """A failure re-attributed by the sequential diagnosis pass."""

    template_path: Path
    target_path: Path
    error: str
    is_root_cause: bool

    @property
    def display_message(self) -> str:
        return self.error if self.is_root_cause else "Failed due to dependency error"
