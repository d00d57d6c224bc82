"""
Template models — a discovered template, its target, and its context.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

TEMPLATE_SUFFIX = ".genie.py"


def is_template_file(name: str) -> bool:
    """Check if a filename is a genie template (``*.genie.py``)."""
    return name.endswith(TEMPLATE_SUFFIX) and name != TEMPLATE_SUFFIX


def target_path_for(template_path: Path) -> Path:
    """Strip the template suffix — the target is always a sibling."""
    return template_path.with_name(template_path.name[: -len(TEMPLATE_SUFFIX)])


class GenieContext(BaseModel):
    """What a template's ``stringify``/``validate`` receives.

    Attributes:
        location: Repo-relative directory of the target ("." at the root).
        cwd:      Absolute working directory genie was run for.
    """

    model_config = ConfigDict(frozen=True)

    location: str
    cwd: str
