"""
Validation models — issues from template hooks and reference mismatches.

Both are reported, never raised: the orchestrator decides what affects
the exit status.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A problem reported by a template's ``validate`` hook."""

    severity: Literal["error", "warning"] = "error"
    source: str                  # target (or package) the issue belongs to
    message: str
    rule: str = ""
    dependency: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


class ReferenceWarning(BaseModel):
    """A tsconfig whose project references disagree with its manifest."""

    config_path: str
    missing_references: list[str] = Field(default_factory=list)
    extra_references: list[str] = Field(default_factory=list)
