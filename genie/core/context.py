"""
Process state — the single source of truth for process-wide genie state.

The state is built ONCE by whichever entry point launches genie and is
passed explicitly to every component that needs it:

    - CLI:    main.py  → GenieState.create(config)
    - Tests:  GenieState.create() per test, no leakage between tests

It owns the three pieces of shared mutable state:

    - the module cache for hook-loaded template helpers,
    - the memoized formatter config path,
    - the repo-root and import-map lookups (pure memoization).

Memoized values are idempotent: two threads racing on a first computation
store the same value, so no lock is needed around them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from genie.core.config.loader import ConfigError, find_config_file, load_config, resolve_import_map
from genie.core.models.config import GenieConfig
from genie.core.services.import_map import ModuleCache, ensure_import_hook

logger = logging.getLogger(__name__)

_UNRESOLVED = object()

# Formatter config files looked up under cwd, in order
FORMATTER_CONFIG_CONVENTION_PATHS = (".oxfmtrc.json", "oxfmt.json")


@dataclass
class GenieState:
    """Process-wide state shared by every task of every run."""

    config: GenieConfig = field(default_factory=GenieConfig)
    module_cache: ModuleCache = field(default_factory=ModuleCache)
    _formatter_config: object = field(default=_UNRESOLVED, repr=False)
    _repo_roots: dict[tuple[str, str], Path] = field(default_factory=dict, repr=False)
    _import_maps: dict[Path, dict[str, Path]] = field(default_factory=dict, repr=False)

    @classmethod
    def create(cls, config: GenieConfig | None = None) -> GenieState:
        """Build the state and install the import hook (once per process)."""
        ensure_import_hook()
        return cls(config=config or GenieConfig())

    # ── Formatter config ────────────────────────────────────────

    def formatter_config_path(self, cwd: Path, explicit: str | None = None) -> Path | None:
        """Resolve the formatter config: explicit → convention paths → none.

        Computed once per state; later calls return the memoized value.
        """
        if self._formatter_config is not _UNRESOLVED:
            return self._formatter_config  # type: ignore[return-value]

        resolved: Path | None = None
        explicit = explicit or self.config.formatter.config
        if explicit:
            candidate = Path(explicit)
            resolved = candidate if candidate.is_absolute() else cwd / candidate
        else:
            for name in FORMATTER_CONFIG_CONVENTION_PATHS:
                candidate = cwd / name
                if candidate.is_file():
                    resolved = candidate
                    break

        self._formatter_config = resolved
        logger.debug("Formatter config: %s", resolved or "(none)")
        return resolved

    # ── Repo root lookup ────────────────────────────────────────

    def repo_root(self, start_dir: Path, cwd: Path) -> Path:
        """Nearest ancestor of ``start_dir`` holding a repo-root marker.

        Falls back to ``cwd`` when no marker is found.
        """
        key = (str(cwd), str(start_dir))
        cached = self._repo_roots.get(key)
        if cached is not None:
            return cached

        root = cwd
        current = start_dir
        while True:
            if any((current / marker).exists() for marker in self.config.repo_root_markers):
                root = current
                break
            parent = current.parent
            if parent == current:
                break
            current = parent

        self._repo_roots[key] = root
        return root

    # ── Import maps ─────────────────────────────────────────────

    def import_map_for(self, template_dir: Path) -> dict[str, Path]:
        """Import map of the nearest genie.yml above ``template_dir``.

        Never raises: an unreadable config just means no aliases.
        """
        cached = self._import_maps.get(template_dir)
        if cached is not None:
            return cached

        import_map: dict[str, Path] = {}
        config_path = find_config_file(template_dir)
        if config_path is not None:
            try:
                import_map = resolve_import_map(config_path, load_config(config_path))
            except ConfigError as e:
                logger.warning("Ignoring import map in %s: %s", config_path, e)

        self._import_maps[template_dir] = import_map
        return import_map

    def reset(self) -> None:
        """Drop every memoized value and invalidate the module cache."""
        self.module_cache.invalidate()
        self._formatter_config = _UNRESOLVED
        self._repo_roots.clear()
        self._import_maps.clear()
