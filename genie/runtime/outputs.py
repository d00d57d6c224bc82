"""
GenieOutput — what a template assigns to ``default``.

``data`` keeps the structured value around so other templates can import
and compose it (e.g. inherit peer dependencies); ``stringify`` renders it
for a concrete context.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import yaml

from genie.core.models.template import GenieContext
from genie.core.models.validation import ValidationIssue

Stringify = Callable[[GenieContext], str]
Validate = Callable[[GenieContext], list[ValidationIssue]]


@dataclass(frozen=True)
class GenieOutput:
    data: Any
    stringify: Stringify
    validate: Validate | None = None


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def to_yaml(data: Any) -> str:
    return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def json_output(data: Any, validate: Validate | None = None) -> GenieOutput:
    """Static JSON document (2-space indent, key order kept)."""
    return GenieOutput(data=data, stringify=lambda ctx: to_json(data), validate=validate)


def yaml_output(data: Any, validate: Validate | None = None) -> GenieOutput:
    """Static YAML document, keys in declaration order."""
    return GenieOutput(data=data, stringify=lambda ctx: to_yaml(data), validate=validate)
