"""
Tests for the orchestrator — whole-run behaviour and the RunReport.
"""

import json
from pathlib import Path

import pytest

from genie.core.engine import orchestrator
from genie.core.engine.orchestrator import (
    RunReport,
    check_all,
    discover,
    find_duplicate_targets,
    generate_all,
    run_batch,
)
from genie.core.errors import DuplicateTargetError, GenerationFailedError
from genie.core.models.outcome import GenerationOutcome
from genie.core.services.discovery import DiscoveryResult

VALIDATING_TEMPLATE = """\
from genie.runtime import json_output

def _validate(ctx):
    return [{{"severity": "{severity}", "message": "{message}"}}]

default = json_output({{"ok": True}}, validate=_validate)
"""


class TestGenerateAll:
    def test_generates_every_target(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({"n": 1}))
        make_template(repo, "b/two.json.genie.py", json_template({"n": 2}))

        report = generate_all(repo, state)

        assert report.all_ok
        assert report.created == 2
        assert json.loads((repo / "a" / "one.json").read_text()) == {"n": 1}
        assert [o.target_path.name for o in report.outcomes] == ["one.json", "two.json"]

    def test_second_run_is_unchanged(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({"n": 1}))
        generate_all(repo, state)

        report = generate_all(repo, state)

        assert report.unchanged == 1
        assert report.status == "ok"

    def test_dry_run_matches_real_run(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({"n": 1}))
        make_template(repo, "b/two.json.genie.py", json_template({"n": 2}))
        generate_all(repo, state, templates=[(repo / "a" / "one.json.genie.py").resolve()])

        dry = generate_all(repo, state, dry_run=True)
        real = generate_all(repo, state)

        assert dry.mode == "dry-run"
        assert [o.status for o in dry.outcomes] == [o.status for o in real.outcomes]
        assert [o.status for o in real.outcomes] == ["unchanged", "created"]

    def test_partial_failure_keeps_siblings(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/ok.json.genie.py", json_template({"n": 1}))
        make_template(repo, "b/bad.json.genie.py", "raise RuntimeError('nope')\n")

        report = generate_all(repo, state)

        assert report.status == "partial"
        assert report.created == 1
        assert report.failed == 1
        assert (repo / "a" / "ok.json").exists()
        with pytest.raises(GenerationFailedError, match="1 file\\(s\\) failed to generate"):
            report.raise_for_failures()

    def test_writeable_mode(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({}))
        generate_all(repo, state, read_only=False)
        assert (repo / "a" / "one.json").stat().st_mode & 0o200

    def test_empty_tree(self, repo: Path, state):
        report = generate_all(repo, state)
        assert report.total == 0
        assert report.all_ok


class TestValidationHooks:
    def test_error_issue_fails_run(self, repo: Path, state, make_template):
        make_template(
            repo,
            "pkg/package.json.genie.py",
            VALIDATING_TEMPLATE.format(severity="error", message="react must be a peer dependency"),
        )

        report = generate_all(repo, state)

        assert report.failed == 0
        assert not report.all_ok
        assert report.validation_error.startswith("Validation failed:")
        assert "pkg/package.json:" in report.validation_error
        assert "✗ react must be a peer dependency" in report.validation_error
        assert report.failure_message == report.validation_error

    def test_warning_issue_passes(self, repo: Path, state, make_template):
        make_template(
            repo,
            "pkg/package.json.genie.py",
            VALIDATING_TEMPLATE.format(severity="warning", message="lodash is unused"),
        )

        report = generate_all(repo, state)

        assert report.all_ok
        assert [i.message for i in report.issues] == ["lodash is unused"]

    def test_hooks_skipped_in_dry_run(self, repo: Path, state, make_template):
        make_template(
            repo,
            "pkg/package.json.genie.py",
            VALIDATING_TEMPLATE.format(severity="error", message="x"),
        )

        report = generate_all(repo, state, dry_run=True)

        assert report.issues == []
        assert report.all_ok

    def test_hooks_run_after_check(self, repo: Path, state, make_template):
        make_template(
            repo,
            "pkg/package.json.genie.py",
            VALIDATING_TEMPLATE.format(severity="error", message="bad"),
        )
        generate_all(repo, state)

        report = check_all(repo, state)

        assert report.failed == 0
        assert report.validation_error is not None


class TestCheckAll:
    def test_up_to_date(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({"n": 1}))
        generate_all(repo, state)

        report = check_all(repo, state)

        assert report.all_ok
        assert report.mode == "check"

    def test_out_of_date(self, repo: Path, state, make_template, json_template):
        make_template(repo, "a/one.json.genie.py", json_template({"n": 1}))
        make_template(repo, "b/two.json.genie.py", json_template({"n": 2}))

        report = check_all(repo, state)

        assert report.failed == 2
        assert report.failure_message == "2 file(s) are out of date"
        assert not (repo / "a" / "one.json").exists()


class TestDiscovery:
    def test_find_duplicate_targets(self):
        templates = [Path("/r/a.json.genie.py"), Path("/r/a.json.genie.py"), Path("/r/b.json.genie.py")]
        assert find_duplicate_targets(templates) == {Path("/r/a.json"): 2}

    def test_duplicates_raise(self, repo: Path, state, monkeypatch):
        dup = Path("/r/a.json.genie.py")
        monkeypatch.setattr(
            orchestrator,
            "find_templates",
            lambda root, skip: DiscoveryResult(templates=[dup, dup]),
        )

        with pytest.raises(DuplicateTargetError, match="Duplicate genie targets detected"):
            discover(repo, state)

    def test_skip_dirs_from_config(self, repo: Path, state, make_template, json_template):
        make_template(repo, "node_modules/x/a.json.genie.py", json_template({}))
        make_template(repo, "keep/a.json.genie.py", json_template({}))

        templates, _ = discover(repo, state)

        assert [t.parent.name for t in templates] == ["keep"]


class TestRunBatch:
    def test_sorted_outcomes(self):
        paths = [Path("/c"), Path("/a"), Path("/b")]
        outcomes = run_batch(paths, lambda p: GenerationOutcome.unchanged(p, p))
        assert [o.template_path for o in outcomes] == sorted(paths)

    def test_empty(self):
        assert run_batch([], lambda p: None) == []


class TestRunReport:
    def test_to_dict(self, tmp_path: Path):
        report = RunReport(
            mode="generate",
            cwd=tmp_path,
            outcomes=[
                GenerationOutcome.created(Path("/a.genie.py"), Path("/a")),
                GenerationOutcome.failure(Path("/b.genie.py"), Path("/b"), "boom", RuntimeError("x")),
            ],
        )

        data = report.to_dict()

        assert data["status"] == "partial"
        assert data["message"] == "1 file(s) failed to generate"
        assert data["summary"]["created"] == 1
        assert data["summary"]["failed"] == 1
        assert "cause" not in data["outcomes"][1]
        json.dumps(data)

    def test_message_for_prefers_finding(self):
        from genie.core.models.outcome import CascadeFinding

        outcome = GenerationOutcome.failure(Path("/b.genie.py"), Path("/b"), "raw error")
        report = RunReport(
            outcomes=[outcome],
            findings=[
                CascadeFinding(
                    template_path=Path("/b.genie.py"),
                    target_path=Path("/b"),
                    error="raw error",
                    is_root_cause=False,
                )
            ],
        )

        assert report.message_for(outcome) == "Failed due to dependency error"

    def test_raise_for_failures_noop_when_ok(self):
        RunReport().raise_for_failures()
