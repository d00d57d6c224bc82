"""
tsconfig.json builder.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from genie.runtime.outputs import GenieOutput, Validate, to_json


def tsconfig_data(
    compiler_options: Mapping[str, Any] | None = None,
    references: Iterable[str] = (),
    *,
    extends: str | None = None,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Plain tsconfig object; ``references`` are paths like ``"../utils"``."""
    data: dict[str, Any] = {}
    if extends is not None:
        data["extends"] = extends
    if compiler_options:
        data["compilerOptions"] = dict(compiler_options)
    if include is not None:
        data["include"] = list(include)
    if exclude is not None:
        data["exclude"] = list(exclude)
    refs = [{"path": path} for path in references]
    if refs:
        data["references"] = refs
    data.update(extra)
    return data


def tsconfig_json(
    compiler_options: Mapping[str, Any] | None = None,
    references: Iterable[str] = (),
    *,
    extends: str | None = None,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    validate: Validate | None = None,
    **extra: Any,
) -> GenieOutput:
    """``default`` for a ``tsconfig.json.genie.py`` template."""
    data = tsconfig_data(
        compiler_options,
        references,
        extends=extends,
        include=include,
        exclude=exclude,
        **extra,
    )
    return GenieOutput(data=data, stringify=lambda ctx: to_json(data), validate=validate)
