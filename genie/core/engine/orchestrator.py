"""
Orchestrator — drives a whole genie run.

Flow:
    discover → duplicate check → per-target task (concurrent)
        → cascade diagnosis (sequential, only when needed)
        → reference validation + validation hooks (only on success)
        → RunReport

Per-target problems never abort the batch. Everything is collected into a
``RunReport``; callers decide whether to ``raise_for_failures()``.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Literal

from genie.core.context import GenieState
from genie.core.errors import DuplicateTargetError, GenerationFailedError
from genie.core.models.outcome import CascadeFinding, GenerationOutcome
from genie.core.models.template import target_path_for
from genie.core.models.validation import ReferenceWarning, ValidationIssue
from genie.core.services.cascade import cascade_message, diagnose, has_cascade_failures
from genie.core.services.content import check_target, generate_target
from genie.core.services.discovery import find_templates
from genie.core.services.reference_validation import log_reference_warnings, validate_references
from genie.core.services.validation_hooks import (
    collect_issues,
    log_validation_warnings,
    validation_failure_message,
)

logger = logging.getLogger(__name__)

RunMode = Literal["generate", "dry-run", "check"]
TargetTask = Callable[[Path], GenerationOutcome]


@dataclass
class RunReport:
    """Result of one generate / dry-run / check run."""

    mode: RunMode = "generate"
    cwd: Path = field(default_factory=Path.cwd)
    outcomes: list[GenerationOutcome] = field(default_factory=list)
    findings: list[CascadeFinding] = field(default_factory=list)
    reference_warnings: list[ReferenceWarning] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)
    discovery_warnings: list[str] = field(default_factory=list)
    validation_error: str | None = None
    duration_ms: int = 0

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def created(self) -> int:
        return self._count("created")

    @property
    def updated(self) -> int:
        return self._count("updated")

    @property
    def unchanged(self) -> int:
        return self._count("unchanged")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def root_causes(self) -> int:
        return sum(1 for f in self.findings if f.is_root_cause)

    @property
    def dependents(self) -> int:
        return len(self.findings) - self.root_causes

    @property
    def all_ok(self) -> bool:
        return self.failed == 0 and self.validation_error is None

    @property
    def status(self) -> str:
        if self.all_ok:
            return "ok"
        if self.failed and self.failed < self.total:
            return "partial"
        return "failed"

    @property
    def failure_message(self) -> str:
        """One-line reason the run failed (``""`` when it did not)."""
        if self.findings:
            return cascade_message(self.findings)
        if self.failed:
            if self.mode == "check":
                return f"{self.failed} file(s) are out of date"
            return f"{self.failed} file(s) failed to generate"
        return self.validation_error or ""

    def message_for(self, outcome: GenerationOutcome) -> str:
        """Display message of a failed outcome, diagnosis-aware."""
        for finding in self.findings:
            if finding.template_path == outcome.template_path:
                return finding.display_message
        return outcome.error or ""

    def raise_for_failures(self) -> None:
        if not self.all_ok:
            raise GenerationFailedError(self)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "cwd": str(self.cwd),
            "status": self.status,
            "message": self.failure_message,
            "summary": {
                "total": self.total,
                "created": self.created,
                "updated": self.updated,
                "unchanged": self.unchanged,
                "skipped": self.skipped,
                "failed": self.failed,
            },
            "cascade": {
                "root_causes": self.root_causes,
                "dependents": self.dependents,
                "findings": [f.model_dump(mode="json") for f in self.findings],
            },
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
            "reference_warnings": [w.model_dump(mode="json") for w in self.reference_warnings],
            "issues": [i.model_dump(mode="json") for i in self.issues],
            "discovery_warnings": list(self.discovery_warnings),
            "duration_ms": self.duration_ms,
        }


# ── Discovery ───────────────────────────────────────────────────


def find_duplicate_targets(templates: Iterable[Path]) -> dict[Path, int]:
    """Targets produced by more than one template."""
    counts = Counter(target_path_for(t) for t in templates)
    return {target: count for target, count in counts.items() if count > 1}


def discover(cwd: Path, state: GenieState) -> tuple[list[Path], list[str]]:
    """Templates under ``cwd`` plus discovery warnings.

    Raises:
        DuplicateTargetError: Two templates map to the same target.
    """
    result = find_templates(cwd, state.config.all_skip_dirs)
    duplicates = find_duplicate_targets(result.templates)
    if duplicates:
        raise DuplicateTargetError(duplicates)
    return result.templates, result.warnings


# ── Batch execution ─────────────────────────────────────────────


def run_batch(templates: list[Path], task: TargetTask) -> list[GenerationOutcome]:
    """Run ``task`` for every template concurrently, one worker each.

    Outcomes come back sorted by template path.
    """
    if not templates:
        return []
    with ThreadPoolExecutor(max_workers=len(templates), thread_name_prefix="genie") as pool:
        outcomes = list(pool.map(task, templates))
    return sorted(outcomes, key=lambda o: str(o.template_path))


def _diagnose_if_needed(report: RunReport, task: TargetTask, state: GenieState) -> None:
    """Attribute cascade failures by re-running with ``task``, which must not write."""
    if not has_cascade_failures(report.outcomes):
        return
    failed = [o for o in report.outcomes if o.failed]
    logger.info("Cascade errors detected, re-running %d failed template(s) sequentially", len(failed))
    report.findings = diagnose(failed, task, state.module_cache)


def _post_validate(report: RunReport, templates: list[Path], cwd: Path, state: GenieState) -> None:
    report.reference_warnings = validate_references(templates, cwd, state.config.references)
    log_reference_warnings(report.reference_warnings)

    report.issues = collect_issues(templates, cwd, state)
    log_validation_warnings(report.issues)
    report.validation_error = validation_failure_message(report.issues)


def _run(
    mode: RunMode,
    cwd: Path,
    state: GenieState,
    task: TargetTask,
    templates: list[Path] | None,
    diagnosis_task: TargetTask | None = None,
) -> RunReport:
    started = time.monotonic()
    report = RunReport(mode=mode, cwd=cwd)

    # Every run sees helper modules fresh.
    state.module_cache.invalidate()

    if templates is None:
        templates, report.discovery_warnings = discover(cwd, state)

    if not templates:
        logger.info("No genie templates found under %s", cwd)
    else:
        report.outcomes = run_batch(templates, task)
        _diagnose_if_needed(report, diagnosis_task or task, state)

        if report.failed == 0 and mode != "dry-run":
            _post_validate(report, templates, cwd, state)

    report.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "genie %s: %d target(s), status=%s (%dms)",
        mode,
        report.total,
        report.status,
        report.duration_ms,
    )
    return report


def generate_all(
    cwd: Path,
    state: GenieState,
    *,
    read_only: bool = True,
    dry_run: bool = False,
    formatter_config: str | None = None,
    templates: list[Path] | None = None,
) -> RunReport:
    """Generate every target under ``cwd`` (or only ``templates``).

    Args:
        cwd: Directory searched for templates.
        state: Process state.
        read_only: Write targets with mode 0o444.
        dry_run: Classify only, never touch the filesystem.
        formatter_config: Explicit formatter config path.
        templates: Restrict the run to these templates (watch mode).

    Raises:
        DuplicateTargetError: Two templates map to the same target.
    """
    config_path = state.formatter_config_path(cwd, formatter_config)
    options = dict(cwd=cwd, state=state, read_only=read_only, formatter_config=config_path)
    task = partial(generate_target, dry_run=dry_run, **options)
    # Diagnosis re-runs never write.
    preview = partial(generate_target, dry_run=True, **options)
    return _run("dry-run" if dry_run else "generate", cwd, state, task, templates, preview)


def check_all(
    cwd: Path,
    state: GenieState,
    *,
    formatter_config: str | None = None,
) -> RunReport:
    """Verify every target under ``cwd`` is up to date.

    Raises:
        DuplicateTargetError: Two templates map to the same target.
    """
    config_path = state.formatter_config_path(cwd, formatter_config)
    task = partial(check_target, cwd=cwd, state=state, formatter_config=config_path)
    return _run("check", cwd, state, task, None)
