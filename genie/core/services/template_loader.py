"""
Template loader — import a ``*.genie.py`` file and validate its shape.

Every load executes the template under a fresh, never-reused module name,
so a template always runs its top-level code again (watch mode relies on
this). The module gets a regular import spec with a ``SourceLoader``, so
it is compiled from source and no ``__pycache__`` is written. Helper
modules imported through the import map are shared for the whole run via
the state's module cache.

A template must expose a module-level ``default`` object with a callable
``stringify(ctx) -> str``. It may also expose ``validate(ctx)``.
"""

from __future__ import annotations

import importlib.util
import itertools
import logging
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from genie.core.context import GenieState
from genie.core.errors import TemplateLoadError, safe_error_string
from genie.core.models.template import TEMPLATE_SUFFIX, GenieContext
from genie.core.services.import_map import ImportScope, ModuleCache, SourceLoader, import_scope

logger = logging.getLogger(__name__)

_module_ids = itertools.count()
_MISSING = object()


def format_origin_trace(error: BaseException) -> str:
    """Full traceback text of ``error``, used for root-cause attribution."""
    try:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    except Exception:
        return safe_error_string(error)


def source_frames(error: BaseException, cache: ModuleCache | None = None) -> tuple[str, ...]:
    """Files of ``error``'s traceback that are templates or hook-loaded helpers.

    Outermost first, so the last entry is where the error was raised.
    Frames of the standard library and of genie itself are skipped.
    """
    filenames = [frame.filename for frame in traceback.extract_tb(error.__traceback__)]
    if isinstance(error, SyntaxError) and error.filename:
        # The broken file never got a frame of its own.
        filenames.append(error.filename)

    frames: list[str] = []
    for filename in filenames:
        if filename.endswith(TEMPLATE_SUFFIX) or (cache is not None and cache.is_hook_source(filename)):
            if not frames or frames[-1] != filename:
                frames.append(filename)
    return tuple(frames)


def compute_location(template_path: Path, repo_root: Path) -> str:
    """Repo-relative directory of a template's target.

    Example: ``/repo/packages/utils/package.json.genie.py`` with repo root
    ``/repo`` → ``packages/utils``.
    """
    try:
        relative = template_path.parent.relative_to(repo_root)
    except ValueError:
        return template_path.parent.as_posix()
    location = relative.as_posix()
    return "." if location in ("", ".") else location


@dataclass
class LoadedTemplate:
    """A template module plus the context it is rendered with."""

    template_path: Path
    output: Any
    ctx: GenieContext
    scope: ImportScope

    @property
    def has_validate(self) -> bool:
        return callable(getattr(self.output, "validate", None))

    def stringify(self) -> str:
        """Render the raw content (before header, marker and formatting)."""
        with import_scope(self.scope):
            content = self.output.stringify(self.ctx)
        if not isinstance(content, str):
            raise TypeError(
                f"stringify() of {self.template_path.name} must return str, "
                f"got {type(content).__name__}"
            )
        return content

    def validate(self) -> list[Any]:
        """Run the optional ``validate`` hook; templates without one return []."""
        if not self.has_validate:
            return []
        with import_scope(self.scope):
            return list(self.output.validate(self.ctx) or [])


def load_template(template_path: Path, cwd: Path, state: GenieState) -> LoadedTemplate:
    """Import a template fresh and build its context.

    Args:
        template_path: Canonical path of the ``*.genie.py`` file.
        cwd: Working directory genie was run for.
        state: Process state (module cache, import maps, repo roots).

    Returns:
        LoadedTemplate ready to stringify.

    Raises:
        TemplateLoadError: On any import-time exception or a wrong export
            shape. The original exception is kept as ``cause``.
    """
    scope = ImportScope(
        importer=template_path,
        import_map=state.import_map_for(template_path.parent),
        cache=state.module_cache,
    )

    module_name = f"_genie_template_{next(_module_ids)}"
    spec = importlib.util.spec_from_file_location(
        module_name,
        template_path,
        loader=SourceLoader(None, template_path),
    )
    module = importlib.util.module_from_spec(spec)

    logger.debug("Loading %s as %s", template_path, module_name)
    sys.modules[module_name] = module
    try:
        with import_scope(scope):
            spec.loader.exec_module(module)
    except Exception as e:
        raise TemplateLoadError(
            template_path,
            f"Failed to import {template_path}: {safe_error_string(e)}",
            cause=e,
            origin_trace=format_origin_trace(e),
            origin_frames=source_frames(e, state.module_cache),
        ) from e
    finally:
        sys.modules.pop(module_name, None)

    exported = getattr(module, "default", _MISSING)
    if exported is _MISSING or not callable(getattr(exported, "stringify", None)):
        observed = "missing" if exported is _MISSING else type(exported).__name__
        cause = TypeError(f"Invalid export type: {observed}")
        raise TemplateLoadError(
            template_path,
            f"Genie file {template_path} must export a `default` object with a "
            f"callable `stringify`, got {observed}",
            cause=cause,
            origin_trace=format_origin_trace(cause),
            origin_frames=(str(template_path),),
        )

    repo_root = state.repo_root(template_path.parent, cwd)
    ctx = GenieContext(location=compute_location(template_path, repo_root), cwd=str(cwd))

    return LoadedTemplate(template_path=template_path, output=exported, ctx=ctx, scope=scope)
