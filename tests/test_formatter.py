"""
Tests for the external formatter wrapper.

A tiny Python script stands in for the real formatter.
"""

import json
import shlex
import sys
import textwrap
from pathlib import Path

import pytest

from genie.core.models.config import FormatterSettings
from genie.core.services.formatter import format_content, is_formattable


@pytest.fixture
def fake_formatter(tmp_path: Path) -> tuple[FormatterSettings, Path]:
    """Formatter that uppercases stdin and records its argv."""
    argv_file = tmp_path / "argv.json"
    script = tmp_path / "fake_fmt.py"
    script.write_text(textwrap.dedent(f"""\
        import json, sys
        with open({str(argv_file)!r}, "w") as fh:
            json.dump(sys.argv[1:], fh)
        sys.stdout.write(sys.stdin.read().upper())
    """))
    command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    return FormatterSettings(command=command, timeout=10), argv_file


def _script_settings(tmp_path: Path, body: str) -> FormatterSettings:
    script = tmp_path / "fmt.py"
    script.write_text(textwrap.dedent(body))
    return FormatterSettings(command=f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}")


class TestFormatContent:
    def test_formats_supported_extension(self, fake_formatter, tmp_path: Path):
        settings, argv_file = fake_formatter
        target = tmp_path / "a.json"

        assert format_content(target, '{"a": 1}', settings) == '{"A": 1}'
        assert json.loads(argv_file.read_text()) == ["--stdin-filepath", str(target)]

    def test_passes_config_path(self, fake_formatter, tmp_path: Path):
        settings, argv_file = fake_formatter
        cfg = tmp_path / ".oxfmtrc.json"

        format_content(tmp_path / "a.yml", "x: 1\n", settings, cfg)

        assert json.loads(argv_file.read_text()) == [
            "-c",
            str(cfg),
            "--stdin-filepath",
            str(tmp_path / "a.yml"),
        ]

    def test_unsupported_extension_not_formatted(self, fake_formatter, tmp_path: Path):
        settings, argv_file = fake_formatter

        assert format_content(tmp_path / "a.md", "text", settings) == "text"
        assert not argv_file.exists()

    def test_missing_binary_falls_back(self, tmp_path: Path):
        settings = FormatterSettings(command="genie-no-such-binary-xyz")
        assert format_content(tmp_path / "a.json", "{}", settings) == "{}"

    def test_nonzero_exit_falls_back(self, tmp_path: Path):
        settings = _script_settings(tmp_path, """\
            import sys
            sys.stdout.write("garbage")
            sys.exit(2)
        """)
        assert format_content(tmp_path / "a.json", "{}", settings) == "{}"

    def test_empty_output_falls_back(self, tmp_path: Path):
        settings = _script_settings(tmp_path, """\
            import sys
            sys.stdin.read()
        """)
        assert format_content(tmp_path / "a.yaml", "a: 1\n", settings) == "a: 1\n"

    def test_timeout_falls_back(self, tmp_path: Path):
        settings = _script_settings(tmp_path, """\
            import time
            time.sleep(5)
        """)
        settings.timeout = 0.2
        assert format_content(tmp_path / "a.json", "{}", settings) == "{}"


class TestIsFormattable:
    @pytest.mark.parametrize("name", ["a.json", "a.jsonc", "a.yml", "a.yaml"])
    def test_default_extensions(self, name: str):
        assert is_formattable(Path(name), FormatterSettings())

    def test_other_extension(self):
        assert not is_formattable(Path("a.toml"), FormatterSettings())
