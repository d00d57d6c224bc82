"""
Import map resolution — lets templates import shared helpers by alias.

Templates live at arbitrary depths, so instead of relative imports they use
aliases declared in the nearest genie.yml::

    imports:
      shared: genie        # `import shared.catalog` -> <repo>/genie/catalog.py

A single ``sys.meta_path`` finder is installed once per process. It only
acts while a template is being loaded (an ``ImportScope`` is active in the
current context); everywhere else it returns None and Python's default
resolution proceeds.

Modules loaded through the finder are tracked in a ``ModuleCache``. A module
whose top-level code raised stays *poisoned* until the cache is invalidated:
importing it again raises ``UninitializedModuleError`` instead of re-running
the broken initializer. That is the cascade signature the orchestrator
diagnoses.
"""

from __future__ import annotations

import contextlib
import contextvars
import importlib.abc
import importlib.machinery
import logging
import sys
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType

logger = logging.getLogger(__name__)


class UninitializedModuleError(ImportError):
    """A module is imported after its initializer already failed."""

    def __init__(self, module_name: str) -> None:
        super().__init__(f"cannot access {module_name!r} before initialization", name=module_name)


class ModuleCache:
    """Hook-loaded modules for one run (one cache generation).

    Thread-safe: every template of a run shares one cache.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loaded: set[str] = set()
        self._sources: set[str] = set()
        self._poisoned: dict[str, BaseException] = {}
        self.generation = 0

    def track(self, name: str, source: Path | None = None) -> None:
        with self._lock:
            self._loaded.add(name)
            if source is not None:
                self._sources.add(str(source))

    def is_hook_source(self, filename: str) -> bool:
        """Whether ``filename`` is the source of a hook-loaded module."""
        with self._lock:
            return filename in self._sources

    def poison(self, name: str, error: BaseException) -> None:
        with self._lock:
            self._poisoned.setdefault(name, error)

    def is_poisoned(self, name: str) -> bool:
        with self._lock:
            return name in self._poisoned

    @property
    def loaded(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._loaded)

    def invalidate(self) -> None:
        """Forget every hook-loaded module so the next import runs fresh."""
        with self._lock:
            for name in self._loaded:
                sys.modules.pop(name, None)
            self._loaded.clear()
            self._sources.clear()
            self._poisoned.clear()
            self.generation += 1
        logger.debug("Module cache invalidated (generation %d)", self.generation)


@dataclass(frozen=True)
class ImportScope:
    """Active while one template is executing."""

    importer: Path
    import_map: dict[str, Path] = field(default_factory=dict)
    cache: ModuleCache = field(default_factory=ModuleCache)


_current_scope: contextvars.ContextVar[ImportScope | None] = contextvars.ContextVar(
    "genie_import_scope", default=None
)


@contextlib.contextmanager
def import_scope(scope: ImportScope) -> Iterator[ImportScope]:
    """Make ``scope`` visible to the finder for the duration of a load."""
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        _current_scope.reset(token)


# ── Finder / loaders ────────────────────────────────────────────


class SourceLoader(importlib.abc.Loader):
    """Executes a module straight from its source file (no bytecode cache).

    With a ``cache``, a module whose top-level code raises is poisoned in it.
    """

    def __init__(self, cache: ModuleCache | None, source_path: Path | None) -> None:
        self._cache = cache
        self._source_path = source_path

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> ModuleType | None:
        return None  # default module creation

    def exec_module(self, module: ModuleType) -> None:
        if self._source_path is None:
            return  # directory package without __init__.py
        source = self._source_path.read_text(encoding="utf-8")
        code = compile(source, str(self._source_path), "exec")
        try:
            exec(code, module.__dict__)
        except BaseException as e:
            if self._cache is not None:
                self._cache.poison(module.__name__, e)
            raise


class _PoisonedLoader(importlib.abc.Loader):
    """Raises the cascade signature for a module whose init already failed."""

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> ModuleType | None:
        return None

    def exec_module(self, module: ModuleType) -> None:
        raise UninitializedModuleError(module.__name__)


class ImportMapFinder(importlib.abc.MetaPathFinder):
    """Resolves import-map aliases relative to the importing template."""

    def find_spec(self, fullname, path=None, target=None):  # noqa: ARG002
        try:
            return self._find_spec(fullname)
        except Exception as e:
            # Resolution problems must never break unrelated imports.
            logger.debug("Import map could not resolve %s: %s", fullname, e)
            return None

    def _find_spec(self, fullname: str) -> importlib.machinery.ModuleSpec | None:
        scope = _current_scope.get()
        if scope is None:
            return None

        alias, *rest = fullname.split(".")
        base = scope.import_map.get(alias)
        if base is None:
            return None

        if scope.cache.is_poisoned(fullname):
            return importlib.machinery.ModuleSpec(fullname, _PoisonedLoader())

        candidate = base.joinpath(*rest)
        package_init = candidate / "__init__.py"
        module_file = candidate.with_name(candidate.name + ".py")

        if not rest and base.is_file():
            spec = importlib.machinery.ModuleSpec(
                fullname,
                SourceLoader(scope.cache, base),
                origin=str(base),
            )
            spec.has_location = True
        elif package_init.is_file():
            spec = importlib.machinery.ModuleSpec(
                fullname,
                SourceLoader(scope.cache, package_init),
                origin=str(package_init),
                is_package=True,
            )
            spec.submodule_search_locations = [str(candidate)]
            spec.has_location = True
        elif rest and module_file.is_file():
            spec = importlib.machinery.ModuleSpec(
                fullname,
                SourceLoader(scope.cache, module_file),
                origin=str(module_file),
            )
            spec.has_location = True
        elif candidate.is_dir():
            spec = importlib.machinery.ModuleSpec(
                fullname,
                SourceLoader(scope.cache, None),
                is_package=True,
            )
            spec.submodule_search_locations = [str(candidate)]
        else:
            return None

        scope.cache.track(fullname, Path(spec.origin) if spec.origin else None)
        return spec


_finder = ImportMapFinder()
_install_lock = threading.Lock()
_installed = False


def ensure_import_hook() -> ImportMapFinder:
    """Install the finder at the front of ``sys.meta_path`` (idempotent)."""
    global _installed
    with _install_lock:
        if not _installed or _finder not in sys.meta_path:
            sys.meta_path.insert(0, _finder)
            _installed = True
            logger.debug("Import map finder installed")
    return _finder


def remove_import_hook() -> None:
    """Uninstall the finder (tests and embedders)."""
    global _installed
    with _install_lock:
        while _finder in sys.meta_path:
            sys.meta_path.remove(_finder)
        _installed = False
