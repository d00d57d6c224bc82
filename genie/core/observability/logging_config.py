"""
Logging setup for the genie CLI.

main.py calls ``configure_from_cli()`` once, before any run. Every module
logs through ``logging.getLogger(__name__)`` and inherits the handlers
installed here.

Console level, highest precedence first:
    --debug  >  --verbose  >  --quiet  >  GENIE_LOG_LEVEL  >  WARNING

``GENIE_LOG_FILE`` adds a file handler (level ``GENIE_LOG_FILE_LEVEL``,
default: the console level) that always records full detail.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

import click

ENV_LEVEL = "GENIE_LOG_LEVEL"
ENV_FILE = "GENIE_LOG_FILE"
ENV_FILE_LEVEL = "GENIE_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

# Default: bare messages, they read like CLI output
_CONSOLE_PLAIN = "%(message)s"

# --verbose: which component said it, and when
_CONSOLE_INFO = "%(asctime)s [%(name)s] %(message)s"

# --debug and log files: level plus file:line
_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"

_TIME_ONLY = "%H:%M:%S"
_DATE_TIME = "%Y-%m-%d %H:%M:%S"

# Libraries templates tend to import; kept at WARNING unless --debug
_NOISY_LOGGERS = ("urllib3", "charset_normalizer", "asyncio")

_LEVEL_COLORS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ConsoleFormatter(logging.Formatter):
    """Colors warnings and errors the same way the CLI colors outcomes."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        return click.style(text, fg=color) if color else text


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown or empty names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level name from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(ENV_LEVEL) or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with genie's console (and file) handler.

    Args:
        level: Console level name.
        log_file: Optional log file path.
        log_file_level: Level of the file handler (default: ``level``).
        quiet_third_party: Pin ``_NOISY_LOGGERS`` to WARNING unless the
            console runs at DEBUG.
    """
    console_level = _parse_level(level)

    if console_level <= logging.DEBUG:
        console_fmt = logging.Formatter(_DETAILED, datefmt=_TIME_ONLY)
    elif console_level <= logging.INFO:
        console_fmt = _ConsoleFormatter(_CONSOLE_INFO, datefmt=_TIME_ONLY)
    else:
        console_fmt = _ConsoleFormatter(_CONSOLE_PLAIN)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_fmt)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_DETAILED, datefmt=_DATE_TIME))
        root.addHandler(file_handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def configure_from_cli(*, debug: bool, verbose: bool, quiet: bool) -> None:
    """Set up logging for one CLI invocation."""
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )
