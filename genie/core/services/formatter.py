"""
External formatter — pipe generated content through a formatter process.

The formatter is a black box invoked as::

    <command> [-c <config>] --stdin-filepath <target>

with the content on stdin and the formatted content on stdout. Any failure
(missing binary, non-zero exit, timeout, empty output) means "formatting
unavailable" and the unformatted content is used instead.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from genie.core.models.config import FormatterSettings

logger = logging.getLogger(__name__)


def is_formattable(target: Path, settings: FormatterSettings) -> bool:
    """Whether ``target``'s extension is handled by the formatter."""
    return target.suffix in settings.extensions


def format_content(
    target: Path,
    content: str,
    settings: FormatterSettings,
    config_path: Path | None = None,
) -> str:
    """Format ``content`` as if it were the file ``target``.

    Args:
        target: Virtual filename, so filename-sensitive rules apply.
        content: Text to format.
        settings: Formatter command, timeout and extensions.
        config_path: Optional formatter config passed with ``-c``.

    Returns:
        Formatted content, or ``content`` unchanged when the extension is
        not formattable or the formatter fails.
    """
    if not is_formattable(target, settings):
        return content

    command = shlex.split(settings.command)
    if config_path is not None:
        command += ["-c", str(config_path)]
    command += ["--stdin-filepath", str(target)]

    try:
        result = subprocess.run(
            command,
            input=content,
            capture_output=True,
            text=True,
            timeout=settings.timeout,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Formatter timed out after %ss on %s", settings.timeout, target)
        return content
    except OSError as e:
        logger.debug("Formatter unavailable (%s), using unformatted %s", e, target)
        return content

    if result.returncode != 0:
        logger.debug(
            "Formatter exited with %d on %s: %s",
            result.returncode,
            target,
            result.stderr.strip(),
        )
        return content

    # Empty output for non-empty input means the formatter choked on it
    # (e.g. YAML with `${{ }}` expressions in flow sequences).
    if not result.stdout and content:
        return content

    return result.stdout
