"""
package.json builder.

Adds the ``$genie`` marker (enriched with provenance at generation time),
orders top-level fields the syncpack way, sorts dependency maps and turns
repo-relative ``file:``/``link:`` dependencies and patch paths into paths
relative to the package's own location.
"""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from typing import Any

from genie.core.models.template import GenieContext
from genie.core.services.reference_validation import workspace_dependencies as _workspace_deps
from genie.runtime.outputs import GenieOutput, Validate, to_json

FIELD_ORDER = (
    "$genie",
    "name",
    "version",
    "type",
    "sideEffects",
    "private",
    "description",
    "keywords",
    "homepage",
    "bugs",
    "license",
    "author",
    "contributors",
    "repository",
    "exports",
    "imports",
    "main",
    "module",
    "types",
    "typings",
    "bin",
    "files",
    "scripts",
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "peerDependenciesMeta",
    "optionalDependencies",
    "bundledDependencies",
    "engines",
    "os",
    "cpu",
    "publishConfig",
    "workspaces",
    "pnpm",
    "patchedDependencies",
    "resolutions",
)

_INTERNAL_PROTOCOLS = ("file:", "link:")
_INTERNAL_ROOT = "packages/"


def relative_path(from_location: str, to_location: str) -> str:
    """Path from one repo-relative directory to another, ``"."`` if equal."""
    if from_location in ("", "."):
        return to_location or "."
    return posixpath.relpath(to_location, from_location)


def resolve_dependencies(deps: Mapping[str, str], location: str) -> dict[str, str]:
    """Sort deps; rewrite ``file:packages/...`` / ``link:packages/...`` relative to ``location``."""
    resolved: dict[str, str] = {}
    for name, version in sorted(deps.items()):
        for protocol in _INTERNAL_PROTOCOLS:
            target = version[len(protocol):]
            if version.startswith(protocol) and target.startswith(_INTERNAL_ROOT):
                version = f"{protocol}{relative_path(location, target)}"
                break
        resolved[name] = version
    return resolved


def resolve_patch_paths(patches: Mapping[str, str], location: str) -> dict[str, str]:
    """Repo-relative patch paths become package-relative; ``./``/``../`` stay."""
    resolved: dict[str, str] = {}
    for pkg, path in sorted(patches.items()):
        if path.startswith("./") or path.startswith("../"):
            resolved[pkg] = path
        else:
            resolved[pkg] = relative_path(location, path)
    return resolved


def build_package_json(data: Mapping[str, Any], location: str) -> dict[str, Any]:
    """Final manifest object for a package at ``location``."""
    built: dict[str, Any] = {"$genie": True, **data}

    for section in ("dependencies", "devDependencies"):
        if section in built:
            built[section] = resolve_dependencies(built[section], location)
    for section in ("peerDependencies", "optionalDependencies"):
        if section in built:
            built[section] = dict(sorted(built[section].items()))
    if "patchedDependencies" in built:
        built["patchedDependencies"] = resolve_patch_paths(built["patchedDependencies"], location)

    rank = {name: i for i, name in enumerate(FIELD_ORDER)}
    ordered = sorted(built, key=lambda key: rank.get(key, len(FIELD_ORDER)))
    return {key: built[key] for key in ordered}


def package_json(data: Mapping[str, Any], validate: Validate | None = None) -> GenieOutput:
    """``default`` for a ``package.json.genie.py`` template.

    Example:
        default = package_json({
            "name": "@acme/utils",
            "dependencies": {"@acme/core": "workspace:*"},
        })
    """

    def stringify(ctx: GenieContext) -> str:
        return to_json(build_package_json(data, ctx.location))

    return GenieOutput(data=dict(data), stringify=stringify, validate=validate)


def workspace_dependencies(manifest: Mapping[str, Any]) -> list[str]:
    """Workspace-protocol dependency names of a manifest (or its ``data``)."""
    return _workspace_deps(dict(manifest))
