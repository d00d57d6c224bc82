"""
Template-authoring helpers — import these from ``*.genie.py`` files:

    from genie.runtime import package_json, define_catalog

    catalog = define_catalog({"effect": "3.12.0"})
    default = package_json({"name": "@acme/utils", "dependencies": {"effect": catalog["effect"]}})
"""

from genie.core.models.template import GenieContext
from genie.core.models.validation import ValidationIssue
from genie.core.services.catalog import (
    Catalog,
    CatalogConflictError,
    OverrideConflictError,
    Overrides,
    PinConflictError,
    define_catalog,
    define_overrides,
    define_patched_dependencies,
    prefix_patch_paths,
)
from genie.runtime.outputs import GenieOutput, json_output, yaml_output
from genie.runtime.package_json import package_json, workspace_dependencies
from genie.runtime.tsconfig_json import tsconfig_json

__all__ = [
    "Catalog",
    "CatalogConflictError",
    "GenieContext",
    "GenieOutput",
    "OverrideConflictError",
    "Overrides",
    "PinConflictError",
    "ValidationIssue",
    "define_catalog",
    "define_overrides",
    "define_patched_dependencies",
    "json_output",
    "package_json",
    "prefix_patch_paths",
    "tsconfig_json",
    "workspace_dependencies",
    "yaml_output",
]
