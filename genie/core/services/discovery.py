"""
Template discovery — find every ``*.genie.py`` file under a root.

The walk is symlink-aware. Monorepos often symlink submodules to a
canonical working tree, so the same physical template can be reachable
through several routes:

    1. The root is resolved once and used as a path-prefix boundary.
       Symlinked directories pointing back inside it are skipped, which
       avoids generating (and concurrently writing) the same file twice.
    2. Symlinked directories pointing outside the root are walked, but
       each external target only once.
    3. Every collected file is canonicalized and deduplicated at the end.

Broken symlinks and stat failures are warnings, never fatal. Only failing
to read the root directory itself raises.
"""

from __future__ import annotations

import logging
import os
import stat as stat_mod
from dataclasses import dataclass, field
from pathlib import Path

from genie.core.models.config import DEFAULT_SKIP_DIRS
from genie.core.models.template import is_template_file

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    """Canonical template paths plus the warnings collected on the way."""

    templates: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.templates)


def find_templates(
    root: Path,
    skip_dirs: frozenset[str] | set[str] | None = None,
) -> DiscoveryResult:
    """Walk ``root`` and return every reachable template, deduplicated.

    Args:
        root: Directory to search.
        skip_dirs: Directory names never descended into
            (default: the built-in infrastructure denylist).

    Returns:
        DiscoveryResult with canonical, sorted template paths.

    Raises:
        OSError: If ``root`` itself cannot be listed.
    """
    skip = frozenset(DEFAULT_SKIP_DIRS) if skip_dirs is None else frozenset(skip_dirs)
    result = DiscoveryResult()

    try:
        root_dir = Path(os.path.realpath(root))
    except OSError:
        root_dir = Path(root)
    root_str = str(root_dir)
    root_prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep

    def is_within_root(target: str) -> bool:
        return target == root_str or target.startswith(root_prefix)

    seen_dirs: set[str] = set()
    collected: list[Path] = []

    def walk(current: Path, *, is_root: bool = False) -> None:
        try:
            entries = sorted(os.listdir(current))
        except OSError as e:
            if is_root:
                raise
            result.warnings.append(f"Skipping {current}: {e}")
            return

        for name in entries:
            if name in skip:
                continue

            full_path = current / name
            try:
                st = full_path.stat()
            except FileNotFoundError:
                result.warnings.append(f"Skipping broken symlink: {full_path}")
                continue
            except OSError as e:
                result.warnings.append(f"Skipping {full_path}: {e}")
                continue

            if stat_mod.S_ISDIR(st.st_mode):
                if full_path.is_symlink():
                    target = os.path.realpath(full_path)
                    # Points back inside the root: the canonical tree is
                    # (or will be) walked directly.
                    if is_within_root(target):
                        logger.debug("Skipping in-root symlink %s -> %s", full_path, target)
                        continue
                    key = target
                else:
                    key = str(full_path)

                if key in seen_dirs:
                    continue
                seen_dirs.add(key)
                walk(full_path)
            elif stat_mod.S_ISREG(st.st_mode) and is_template_file(name):
                collected.append(full_path)

    walk(Path(root), is_root=True)

    unique: dict[str, Path] = {}
    for path in collected:
        try:
            canonical = path.resolve(strict=True)
        except OSError as e:
            result.warnings.append(f"Skipping {path}: {e}")
            continue
        unique.setdefault(str(canonical), canonical)

    result.templates = sorted(unique.values())

    for warning in result.warnings:
        logger.warning(warning)

    logger.info("Discovered %d template(s) under %s", result.count, root_dir)
    return result
