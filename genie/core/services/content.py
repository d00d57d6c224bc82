"""
Content pipeline — turn a template into final file content and classify it.

Flow for one target:

    load template → stringify → enrich manifest marker → header → format
        → compare with disk → (write atomically)

``generate_target`` and ``check_target`` never raise for per-target
problems. They return a ``GenerationOutcome`` so a single broken template
does not hide the results of its siblings.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from genie.core.context import GenieState
from genie.core.errors import CheckError, GenerationError, TemplateLoadError, safe_error_string
from genie.core.models.outcome import GenerationOutcome
from genie.core.models.template import target_path_for
from genie.core.persistence.atomic_write import READ_ONLY_MODE, WRITABLE_MODE, atomic_write
from genie.core.services.formatter import format_content
from genie.core.services.template_loader import LoadedTemplate, load_template

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
MARKER_FIELD = "$genie"
MARKER_WARNING = "DO NOT EDIT - changes will be overwritten"

CHECK_MISSING_MESSAGE = "File does not exist. Run 'genie' to generate it."
CHECK_STALE_MESSAGE = "File content is out of date. Run 'genie' to regenerate it."


# ── Header / marker ─────────────────────────────────────────────

_HASH_EXTENSIONS = {".yml", ".yaml", ".toml", ".py", ".sh", ".nix"}
_HTML_EXTENSIONS = {".md", ".html"}


def header_comment(target: Path, source_name: str) -> str:
    """Comment header naming the generating template.

    ``source_name`` is the template's basename, so the header is the same
    no matter which directory genie was invoked from.
    """
    ext = target.suffix
    name = target.name

    if (name.startswith("tsconfig") and ext == ".json") or ext == ".jsonc":
        return f"// Generated file - DO NOT EDIT\n// Source: {source_name}\n"
    if ext == ".json":
        return ""  # plain JSON has no comment syntax
    if ext in _HASH_EXTENSIONS:
        return f"# Generated file - DO NOT EDIT\n# Source: {source_name}\n\n"
    if ext in _HTML_EXTENSIONS:
        return f"<!-- Generated file - DO NOT EDIT -->\n<!-- Source: {source_name} -->\n\n"
    if ext == ".css":
        return f"/* Generated file - DO NOT EDIT\n * Source: {source_name} */\n"
    return f"// Generated file - DO NOT EDIT\n// Source: {source_name}\n"


def enrich_manifest_marker(content: str, source_name: str) -> str:
    """Replace a bare ``$genie`` flag with structured provenance.

    Content that is not a JSON object with the marker is returned as is.
    """
    try:
        parsed = json.loads(content)
    except ValueError:
        return content

    if not isinstance(parsed, dict) or MARKER_FIELD not in parsed:
        return content

    parsed[MARKER_FIELD] = {"source": source_name, "warning": MARKER_WARNING}
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def diff_summary(old: str, new: str) -> str:
    """Short line-count summary of a change, ``""`` when identical."""
    if old == new:
        return ""
    delta = len(new.split("\n")) - len(old.split("\n"))
    if delta > 0:
        return f"(+{delta} lines)"
    if delta < 0:
        return f"({delta} lines)"
    return "(content changed)"


# ── Expected content ────────────────────────────────────────────


@dataclass
class ExpectedContent:
    """Final content of one target, plus the template that produced it."""

    target_path: Path
    content: str
    template: LoadedTemplate


def expected_content(
    template_path: Path,
    cwd: Path,
    state: GenieState,
    formatter_config: Path | None = None,
) -> ExpectedContent:
    """Compute the exact bytes a target should contain.

    Shared by generate, dry-run and check so all three classify alike.

    Raises:
        TemplateLoadError: The template could not be imported.
        Exception: Anything raised by ``stringify``.
    """
    target = target_path_for(template_path)
    source_name = template_path.name

    template = load_template(template_path, cwd, state)
    raw = template.stringify()

    if target.name == MANIFEST_FILENAME:
        raw = enrich_manifest_marker(raw, source_name)

    formatted = format_content(target, raw, state.config.formatter, formatter_config)
    return ExpectedContent(
        target_path=target,
        content=header_comment(target, source_name) + formatted,
        template=template,
    )


def _read_current(target: Path) -> tuple[bool, str]:
    if not target.is_file():
        return False, ""
    try:
        return True, target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return True, ""


def _failure(template_path: Path, target: Path, error: Exception) -> GenerationOutcome:
    # Only load errors are unwrapped; anything else is its own cause.
    cause = error.cause if isinstance(error, TemplateLoadError) else error
    wrapped = GenerationError(
        target,
        f"Failed to generate {target}: {safe_error_string(error)}",
        cause,
    )
    return GenerationOutcome.failure(template_path, target, wrapped.message, cause=cause)


# ── Generate / check ────────────────────────────────────────────


def generate_target(
    template_path: Path,
    cwd: Path,
    state: GenieState,
    *,
    read_only: bool = True,
    dry_run: bool = False,
    formatter_config: Path | None = None,
) -> GenerationOutcome:
    """Generate (or, with ``dry_run``, classify) one target.

    Returns:
        GenerationOutcome — created, updated, unchanged, skipped or failed.
        Dry-run returns exactly the classification a real run would.
    """
    target = target_path_for(template_path)

    try:
        expected = expected_content(template_path, cwd, state, formatter_config)

        if not target.parent.is_dir():
            reason = f"Parent directory missing: {target.parent}"
            logger.warning("Skipping %s: %s", target, reason)
            return GenerationOutcome.skip(template_path, target, reason)

        exists, current = _read_current(target)
        unchanged = exists and current == expected.content
        summary = diff_summary(current, expected.content) if exists else ""

        if dry_run:
            if not exists:
                logger.info("Would create: %s", target)
                return GenerationOutcome.created(template_path, target)
            if unchanged:
                return GenerationOutcome.unchanged(template_path, target)
            logger.info("Would update: %s  %s", target, summary)
            return GenerationOutcome.updated(template_path, target, summary)

        if unchanged:
            if read_only:
                try:
                    target.chmod(READ_ONLY_MODE)
                except OSError as e:
                    logger.debug("Could not re-apply read-only mode on %s: %s", target, e)
            return GenerationOutcome.unchanged(template_path, target)

        atomic_write(
            target,
            expected.content,
            mode=READ_ONLY_MODE if read_only else WRITABLE_MODE,
        )

        if not exists:
            logger.info("✓ Created %s", target)
            return GenerationOutcome.created(template_path, target)

        logger.info("✓ Updated %s  %s", target, summary)
        return GenerationOutcome.updated(template_path, target, summary)

    except Exception as e:
        logger.debug("Generation of %s failed", target, exc_info=True)
        return _failure(template_path, target, e)


def check_target(
    template_path: Path,
    cwd: Path,
    state: GenieState,
    *,
    formatter_config: Path | None = None,
) -> GenerationOutcome:
    """Verify a target matches what its template would generate now.

    Returns:
        ``unchanged`` when up to date, otherwise ``failed`` whose cause is a
        ``CheckError`` (stale/missing) or the underlying generation error.
    """
    target = target_path_for(template_path)

    try:
        expected = expected_content(template_path, cwd, state, formatter_config)
    except Exception as e:
        logger.debug("Check of %s failed", target, exc_info=True)
        return _failure(template_path, target, e)

    exists, current = _read_current(target)
    if not exists:
        error = CheckError(target, CHECK_MISSING_MESSAGE)
    elif current != expected.content:
        error = CheckError(target, CHECK_STALE_MESSAGE)
    else:
        logger.info("✓ %s is up to date", target)
        return GenerationOutcome.unchanged(template_path, target)

    return GenerationOutcome.failure(template_path, target, error.message, cause=error)
