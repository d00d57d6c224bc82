"""
Tests for the template loader and the import-map hook.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from genie.core.errors import TemplateLoadError
from genie.core.services.import_map import (
    ImportScope,
    ModuleCache,
    UninitializedModuleError,
    ensure_import_hook,
    import_scope,
)
from genie.core.services.template_loader import compute_location, load_template


def _write(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestLoadTemplate:
    def test_stringify_receives_context(self, repo: Path, state, make_template):
        template = make_template(
            repo,
            "packages/utils/out.txt.genie.py",
            """\
            class Output:
                def stringify(self, ctx):
                    return f"{ctx.location}|{ctx.cwd}"

            default = Output()
            """,
        )

        loaded = load_template(template, repo, state)

        assert loaded.stringify() == f"packages/utils|{repo}"
        assert loaded.ctx.location == "packages/utils"
        assert not loaded.has_validate

    def test_root_location_is_dot(self, repo: Path, state, make_template, json_template):
        template = make_template(repo, "package.json.genie.py", json_template({"a": 1}))
        assert load_template(template, repo, state).ctx.location == "."

    def test_location_uses_nearest_marker(self, tmp_path: Path, state, make_template, json_template):
        (tmp_path / "outer" / ".git").mkdir(parents=True)
        (tmp_path / "outer" / "inner" / "megarepo.json").parent.mkdir(parents=True)
        (tmp_path / "outer" / "inner" / "megarepo.json").write_text("{}")
        template = make_template(tmp_path, "outer/inner/pkg/a.json.genie.py", json_template({}))

        loaded = load_template(template, tmp_path / "outer", state)

        assert loaded.ctx.location == "pkg"

    def test_fresh_module_per_load(self, repo: Path, state, make_template):
        template = make_template(
            repo,
            "counter.txt.genie.py",
            """\
            import itertools
            _calls = itertools.count()

            class Output:
                def stringify(self, ctx):
                    return str(next(_calls))

            default = Output()
            """,
        )

        first = load_template(template, repo, state)
        first.stringify()
        second = load_template(template, repo, state)

        assert second.stringify() == "0"
        assert first.output is not second.output

    def test_missing_default_is_load_error(self, repo: Path, state, make_template):
        template = make_template(repo, "x.json.genie.py", "value = 1\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert "got missing" in str(exc.value)
        assert str(template) in str(exc.value)

    def test_wrong_export_shape_names_type(self, repo: Path, state, make_template):
        template = make_template(repo, "x.json.genie.py", "default = 'text'\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert "got str" in str(exc.value)
        assert isinstance(exc.value.cause, TypeError)

    def test_initializer_error_keeps_cause_and_trace(self, repo: Path, state, make_template):
        template = make_template(repo, "x.json.genie.py", "raise RuntimeError('boom')\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert isinstance(exc.value.cause, RuntimeError)
        assert str(template) in exc.value.origin_trace
        assert exc.value.origin_frames == (str(template),)

    def test_origin_frames_end_where_the_error_was_raised(self, repo: Path, state, make_template):
        _write(repo / "genie.yml", "imports:\n  genie_test_frames: helpers\n")
        helper = repo / "helpers" / "settings.py"
        _write(helper, "raise KeyError('DATABASE_URL')\n")
        template = make_template(repo, "x.json.genie.py", "import genie_test_frames.settings\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert exc.value.origin_frames == (str(template), str(helper.resolve()))

    def test_syntax_error_is_load_error(self, repo: Path, state, make_template):
        template = make_template(repo, "x.json.genie.py", "def broken(:\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert isinstance(exc.value.cause, SyntaxError)
        assert exc.value.origin_frames == (str(template),)

    def test_module_has_import_spec(self, repo: Path, state, make_template):
        template = make_template(
            repo,
            "x.genie.py",
            """\
            class Output:
                def stringify(self, ctx):
                    return f"{__spec__.name}|{__spec__.origin}|{__loader__.__class__.__name__}"

            default = Output()
            """,
        )

        name, origin, loader = load_template(template, repo, state).stringify().split("|")

        assert name.startswith("_genie_template_")
        assert origin == str(template)
        assert loader == "SourceLoader"

    def test_no_bytecode_cache_written(self, repo: Path, state, make_template, json_template):
        template = make_template(repo, "x.json.genie.py", json_template({"a": 1}))

        load_template(template, repo, state)

        assert not (template.parent / "__pycache__").exists()

    def test_non_string_stringify_raises(self, repo: Path, state, make_template):
        template = make_template(
            repo,
            "x.json.genie.py",
            """\
            class Output:
                def stringify(self, ctx):
                    return 42

            default = Output()
            """,
        )

        with pytest.raises(TypeError, match="must return str"):
            load_template(template, repo, state).stringify()


class TestComputeLocation:
    def test_outside_repo_root_falls_back_to_absolute(self, tmp_path: Path):
        template = tmp_path / "a" / "x.genie.py"
        assert compute_location(template, tmp_path / "other") == (tmp_path / "a").as_posix()

    def test_nested(self, tmp_path: Path):
        template = tmp_path / "packages" / "@acme" / "utils" / "package.json.genie.py"
        assert compute_location(template, tmp_path) == "packages/@acme/utils"


class TestImportMap:
    def _repo_with_helpers(self, repo: Path) -> None:
        _write(repo / "genie.yml", "imports:\n  genie_test_shared: shared\n")
        _write(
            repo / "shared" / "catalog.py",
            """\
            CATALOG = {"effect": "3.12.0"}
            """,
        )

    def test_alias_resolves_relative_to_config(self, repo: Path, state, make_template):
        self._repo_with_helpers(repo)
        template = make_template(
            repo,
            "packages/app/version.txt.genie.py",
            """\
            from genie_test_shared.catalog import CATALOG

            class Output:
                def stringify(self, ctx):
                    return CATALOG["effect"]

            default = Output()
            """,
        )

        assert load_template(template, repo, state).stringify() == "3.12.0"
        assert "genie_test_shared.catalog" in state.module_cache.loaded

    def test_alias_to_single_file(self, repo: Path, state, make_template):
        _write(repo / "genie.yml", "imports:\n  genie_test_single: helpers/single.py\n")
        _write(repo / "helpers" / "single.py", "VALUE = 'single'\n")
        template = make_template(
            repo,
            "v.txt.genie.py",
            """\
            import genie_test_single

            class Output:
                def stringify(self, ctx):
                    return genie_test_single.VALUE

            default = Output()
            """,
        )

        assert load_template(template, repo, state).stringify() == "single"

    def test_helpers_shared_within_a_run(self, repo: Path, state, make_template):
        self._repo_with_helpers(repo)
        body = """\
            from genie_test_shared import catalog

            class Output:
                def stringify(self, ctx):
                    return str(id(catalog))

            default = Output()
            """
        a = make_template(repo, "a/x.txt.genie.py", body)
        b = make_template(repo, "b/x.txt.genie.py", body)

        assert load_template(a, repo, state).stringify() == load_template(b, repo, state).stringify()

    def test_invalidate_reloads_helpers(self, repo: Path, state, make_template):
        self._repo_with_helpers(repo)
        template = make_template(
            repo,
            "v.txt.genie.py",
            """\
            from genie_test_shared.catalog import CATALOG

            class Output:
                def stringify(self, ctx):
                    return CATALOG["effect"]

            default = Output()
            """,
        )
        assert load_template(template, repo, state).stringify() == "3.12.0"

        _write(repo / "shared" / "catalog.py", 'CATALOG = {"effect": "4.0.0"}\n')
        state.module_cache.invalidate()

        assert load_template(template, repo, state).stringify() == "4.0.0"

    def test_unknown_alias_falls_through(self, repo: Path, state, make_template):
        self._repo_with_helpers(repo)
        template = make_template(repo, "x.txt.genie.py", "import genie_test_not_mapped\n")

        with pytest.raises(TemplateLoadError) as exc:
            load_template(template, repo, state)

        assert isinstance(exc.value.cause, ModuleNotFoundError)

    def test_poisoned_module_raises_cascade_signature(self, tmp_path: Path):
        helpers = tmp_path / "helpers"
        _write(helpers / "broken.py", "raise RuntimeError('init failed')\n")
        ensure_import_hook()
        cache = ModuleCache()
        scope = ImportScope(
            importer=tmp_path / "t.genie.py",
            import_map={"genie_test_poison": helpers},
            cache=cache,
        )

        try:
            with import_scope(scope):
                with pytest.raises(RuntimeError, match="init failed"):
                    __import__("genie_test_poison.broken")
                with pytest.raises(UninitializedModuleError) as exc:
                    __import__("genie_test_poison.broken")
        finally:
            cache.invalidate()

        assert "before initialization" in str(exc.value)
        assert cache.is_poisoned("genie_test_poison.broken") is False

    def test_hook_inactive_outside_scope(self, tmp_path: Path):
        ensure_import_hook()
        with pytest.raises(ModuleNotFoundError):
            __import__("genie_test_outside_scope")
        assert "genie_test_outside_scope" not in sys.modules

    def test_hook_installed_once(self):
        ensure_import_hook()
        finder = ensure_import_hook()
        assert sys.meta_path.count(finder) == 1
