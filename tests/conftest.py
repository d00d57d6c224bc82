"""
Shared test fixtures and configuration.
"""

import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from genie.core.context import GenieState
from genie.core.models.config import FormatterSettings, GenieConfig

# Guaranteed-missing formatter: every test sees unformatted output.
NO_FORMATTER = "genie-test-formatter-does-not-exist"


@pytest.fixture
def config() -> GenieConfig:
    """Default config with the formatter disabled."""
    return GenieConfig(formatter=FormatterSettings(command=NO_FORMATTER))


@pytest.fixture
def state(config: GenieConfig) -> Iterator[GenieState]:
    """Fresh process state; hook-loaded modules are dropped afterwards."""
    st = GenieState.create(config)
    yield st
    st.reset()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A temp directory marked as a repo root."""
    (tmp_path / ".git").mkdir()
    return tmp_path


@pytest.fixture
def make_template() -> Callable[[Path, str, str], Path]:
    """Write a ``*.genie.py`` template; returns its canonical path."""

    def _make(root: Path, relative: str, body: str) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path.resolve()

    return _make


@pytest.fixture
def json_template() -> Callable[[dict], str]:
    """Template body that renders ``data`` as static JSON."""

    def _body(data: dict) -> str:
        return (
            "from genie.runtime import json_output\n"
            f"default = json_output({data!r})\n"
        )

    return _body
