"""
Version catalogs and overrides — immutable pin maps with conflict checks.

Both shapes compose the same way:

    1. Bases merge left to right. The same key with two different values
       across bases is a conflict (never silently resolved).
    2. Additions merge on top. Re-declaring an identical pin is a logged
       duplicate; a different value is a conflict.

Conflicts raise at construction time, so an inconsistent catalog never
exists.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Iterable, Iterator, Mapping

logger = logging.getLogger(__name__)


# ── Errors ──────────────────────────────────────────────────────


class PinConflictError(ValueError):
    """Two sources pin the same key to different values."""

    kind = "Pin"

    def __init__(self, key: str, base_value: str, new_value: str) -> None:
        super().__init__(f'{self.kind} conflict for "{key}": "{base_value}" vs "{new_value}"')
        self.key = key
        self.base_value = base_value
        self.new_value = new_value


class CatalogConflictError(PinConflictError):
    kind = "Catalog"

    @property
    def package_name(self) -> str:
        return self.key

    @property
    def base_version(self) -> str:
        return self.base_value

    @property
    def new_version(self) -> str:
        return self.new_value


class OverrideConflictError(PinConflictError):
    kind = "Override"


# ── Immutable pin maps ──────────────────────────────────────────


class PinMap(Mapping[str, str]):
    """Read-only ``str -> str`` mapping. Built once, never mutated."""

    __slots__ = ("_pins",)

    def __init__(self, pins: Mapping[str, str] | None = None) -> None:
        object.__setattr__(self, "_pins", dict(pins or {}))

    def __getitem__(self, key: str) -> str:
        return self._pins[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._pins)

    def __len__(self) -> int:
        return len(self._pins)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._pins) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._pins.items()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._pins!r})"


class Catalog(PinMap):
    """Package name → version."""


class Overrides(PinMap):
    """Package (or selector) → override value."""


# ── Composition ─────────────────────────────────────────────────


def compose_pins(
    bases: Iterable[Mapping[str, str]],
    additions: Mapping[str, str],
    *,
    conflict_error: type[PinConflictError],
    label: str,
    describe: Callable[[str, str], str],
) -> dict[str, str]:
    """Merge ``bases`` then ``additions`` with duplicate/conflict detection.

    Args:
        bases: Existing pin maps, merged left to right.
        additions: New pins declared by the caller.
        conflict_error: Raised with ``(key, base_value, new_value)``.
        label: Prefix of duplicate warnings, e.g. ``define_catalog``.
        describe: Renders a duplicate pin for the warning.

    Returns:
        The merged pins, in insertion order.
    """
    merged: dict[str, str] = {}

    for base in bases:
        for key, value in base.items():
            if key in merged and merged[key] != value:
                raise conflict_error(key, merged[key], value)
            merged[key] = value

    for key, value in additions.items():
        if key in merged:
            if merged[key] != value:
                raise conflict_error(key, merged[key], value)
            logger.warning("[%s] Duplicate: %s already defined", label, describe(key, value))
        merged[key] = value

    return merged


def define_catalog(
    packages: Mapping[str, str],
    extends: Iterable[Mapping[str, str]] = (),
) -> Catalog:
    """Build a version catalog, optionally extending base catalogs.

    Example:
        >>> base = define_catalog({"effect": "3.12.0"})
        >>> define_catalog({"react": "19.0.0"}, extends=[base])
        Catalog({'effect': '3.12.0', 'react': '19.0.0'})
    """
    return Catalog(
        compose_pins(
            extends,
            packages,
            conflict_error=CatalogConflictError,
            label="define_catalog",
            describe=lambda name, version: f'"{name}@{version}"',
        )
    )


def define_overrides(
    overrides: Mapping[str, str],
    extends: Iterable[Mapping[str, str]] = (),
) -> Overrides:
    """Build an overrides set, optionally extending base sets."""
    return Overrides(
        compose_pins(
            extends,
            overrides,
            conflict_error=OverrideConflictError,
            label="define_overrides",
            describe=lambda key, value: f'"{key}" = "{value}"',
        )
    )


# ── Patch paths ─────────────────────────────────────────────────


def prefix_patch_paths(patches: Mapping[str, str], prefix: str) -> dict[str, str]:
    """Prefix every patch path, e.g. for patches defined in a submodule."""
    return {pkg: f"{prefix}{path}" for pkg, path in patches.items()}


def define_patched_dependencies(location: str, patches: Mapping[str, str]) -> dict[str, str]:
    """Turn package-relative patch paths into repo-relative ones.

    ``./patches/x.patch`` declared in ``packages/utils`` becomes
    ``packages/utils/patches/x.patch``. Paths that are neither ``./`` nor
    ``../`` relative are already repo-relative and kept.
    """
    resolved: dict[str, str] = {}
    for pkg, path in patches.items():
        if path.startswith("./") or path.startswith("../"):
            resolved[pkg] = posixpath.normpath(posixpath.join(location, path))
        else:
            resolved[pkg] = path
    return resolved
