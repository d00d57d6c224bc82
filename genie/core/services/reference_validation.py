"""
Reference validation — tsconfig project references vs. workspace deps.

For every generated ``tsconfig.json`` with a sibling ``package.json``, the
manifest's workspace dependencies (``workspace:`` protocol) are mapped to
expected reference paths and compared with the tsconfig's ``references``.
Mismatches are reported as warnings; this never fails a run.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from genie.core.models.config import ReferenceConvention
from genie.core.models.template import target_path_for
from genie.core.models.validation import ReferenceWarning

logger = logging.getLogger(__name__)

TSCONFIG_SUFFIX = "tsconfig.json"
WORKSPACE_PROTOCOL = "workspace:"


def _read_json(path: Path, *, strip_comments: bool = False) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None
    if strip_comments:
        text = "\n".join(line for line in text.splitlines() if not line.lstrip().startswith("//"))
    try:
        return json.loads(text)
    except ValueError:
        return None


def workspace_dependencies(manifest: Any) -> list[str]:
    """Names of ``dependencies``/``devDependencies`` on the workspace protocol."""
    if not isinstance(manifest, dict):
        return []
    names: list[str] = []
    for section in ("dependencies", "devDependencies"):
        deps = manifest.get(section)
        if not isinstance(deps, dict):
            continue
        for name, version in deps.items():
            if isinstance(version, str) and version.startswith(WORKSPACE_PROTOCOL) and name not in names:
                names.append(name)
    return names


def tsconfig_references(tsconfig: Any) -> list[str]:
    """``references[].path`` entries of a parsed tsconfig."""
    if not isinstance(tsconfig, dict):
        return []
    refs = tsconfig.get("references")
    if not isinstance(refs, list):
        return []
    return [ref["path"] for ref in refs if isinstance(ref, dict) and isinstance(ref.get("path"), str)]


def expected_reference(
    package_name: str,
    package_dir: Path,
    cwd: Path,
    convention: ReferenceConvention,
) -> str | None:
    """Reference path a dependency should have, or None when not covered.

    ``<scope>/<short>`` maps to ``../<short>`` when the depending package
    lives under ``<packages_dir>/`` (relative to ``cwd``).
    """
    prefix = f"{convention.scope}/"
    if not package_name.startswith(prefix):
        return None

    relative = Path(os.path.relpath(package_dir, cwd)).as_posix()
    if not relative.startswith(f"{convention.packages_dir.rstrip('/')}/"):
        return None

    return f"../{package_name[len(prefix):]}"


def _difference(left: list[str], right: list[str]) -> list[str]:
    exclude = set(right)
    return [item for item in left if item not in exclude]


def validate_references(
    templates: Iterable[Path],
    cwd: Path,
    convention: ReferenceConvention | None = None,
) -> list[ReferenceWarning]:
    """Compare each generated tsconfig's references with its manifest.

    Args:
        templates: Discovered template paths.
        cwd: Working directory; warning paths are relative to it.
        convention: Dependency name → reference path convention.

    Returns:
        One ReferenceWarning per mismatched tsconfig, in template order.
    """
    convention = convention or ReferenceConvention()
    warnings: list[ReferenceWarning] = []

    for template in sorted(templates):
        tsconfig_path = target_path_for(template)
        if not tsconfig_path.name.endswith(TSCONFIG_SUFFIX):
            continue

        manifest_path = tsconfig_path.parent / "package.json"
        if not manifest_path.is_file() or not tsconfig_path.is_file():
            continue

        deps = workspace_dependencies(_read_json(manifest_path))
        current = tsconfig_references(_read_json(tsconfig_path, strip_comments=True))

        expected = [
            ref
            for ref in (
                expected_reference(dep, tsconfig_path.parent, cwd, convention) for dep in deps
            )
            if ref is not None
        ]

        missing = _difference(expected, current)
        extra = _difference(current, expected)
        if missing or extra:
            warnings.append(
                ReferenceWarning(
                    config_path=Path(os.path.relpath(tsconfig_path, cwd)).as_posix(),
                    missing_references=missing,
                    extra_references=extra,
                )
            )

    return warnings


def log_reference_warnings(warnings: list[ReferenceWarning]) -> None:
    if not warnings:
        return
    logger.warning("⚠ Tsconfig reference warnings:")
    for warning in warnings:
        logger.warning("  %s:", warning.config_path)
        for ref in warning.missing_references:
            logger.warning("    - Missing reference: %s", ref)
        for ref in warning.extra_references:
            logger.warning("    - Extra reference (not in package.json deps): %s", ref)
