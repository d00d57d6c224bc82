"""
Validation hooks — run each template's optional ``validate(ctx)``.

Hooks run after a successful generate (not dry-run) and after a successful
check. Warnings are logged; error-severity issues fail the run with a
message grouped by source.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from genie.core.context import GenieState
from genie.core.errors import safe_error_string
from genie.core.models.template import target_path_for
from genie.core.models.validation import ValidationIssue
from genie.core.services.template_loader import load_template

logger = logging.getLogger(__name__)


def _coerce_issue(item: Any, default_source: str) -> ValidationIssue:
    if isinstance(item, ValidationIssue):
        return item
    if isinstance(item, dict):
        data = {"source": default_source, **item}
        try:
            return ValidationIssue.model_validate(data)
        except ValidationError as e:
            return ValidationIssue(
                source=default_source,
                message=f"Malformed validation issue {item!r}: {e.error_count()} error(s)",
                rule="validate-hook",
            )
    return ValidationIssue(
        source=default_source,
        message=f"validate() returned {type(item).__name__}, expected an issue",
        rule="validate-hook",
    )


def collect_issues(templates: Iterable[Path], cwd: Path, state: GenieState) -> list[ValidationIssue]:
    """Call every template's ``validate`` hook and gather the issues.

    A hook that raises becomes an error issue for its target.
    """
    issues: list[ValidationIssue] = []

    for template_path in sorted(templates):
        source = os.path.relpath(target_path_for(template_path), cwd)
        try:
            loaded = load_template(template_path, cwd, state)
            if not loaded.has_validate:
                continue
            raw = loaded.validate()
        except Exception as e:
            logger.debug("validate() of %s failed", template_path, exc_info=True)
            issues.append(
                ValidationIssue(
                    source=source,
                    message=f"validate() failed: {safe_error_string(e)}",
                    rule="validate-hook",
                )
            )
            continue

        issues.extend(_coerce_issue(item, source) for item in raw)

    return issues


def format_issues(issues: Iterable[ValidationIssue]) -> str:
    """Issues grouped by source, one line each::

        packages/app/package.json:
          ✗ react must be a peer dependency
          ⚠ lodash is unused
    """
    grouped: dict[str, list[ValidationIssue]] = {}
    for issue in issues:
        grouped.setdefault(issue.source, []).append(issue)

    lines: list[str] = []
    for source, source_issues in grouped.items():
        lines.append(f"\n{source}:")
        for issue in source_issues:
            prefix = "  ✗" if issue.is_error else "  ⚠"
            lines.append(f"{prefix} {issue.message}")
    return "\n".join(lines)


def validation_failure_message(issues: Iterable[ValidationIssue]) -> str | None:
    """Failure message when any issue is an error, else None."""
    errors = [i for i in issues if i.is_error]
    if not errors:
        return None
    return f"Validation failed:{format_issues(errors)}"


def log_validation_warnings(issues: Iterable[ValidationIssue]) -> None:
    warnings = [i for i in issues if not i.is_error]
    if warnings:
        logger.warning("⚠ Validation warnings:%s", format_issues(warnings))
