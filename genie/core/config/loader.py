"""
Configuration loader — reads genie.yml into a ``GenieConfig``.

Reads YAML, validates against the pydantic schema, and returns a typed
config. A repository without genie.yml gets the defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from genie.core.models.config import GenieConfig

logger = logging.getLogger(__name__)

# Default config filename
GENIE_CONFIG_FILE = "genie.yml"


class ConfigError(Exception):
    """Raised when genie configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for genie.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to genie.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(64):  # safety limit
        candidate = current / GENIE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, start_dir: Path | None = None) -> GenieConfig:
    """Load and validate genie configuration.

    Args:
        path: Explicit path to genie.yml. If None, searches upward from
            ``start_dir`` and falls back to defaults when nothing is found.
        start_dir: Where the upward search begins (default: cwd).

    Returns:
        Validated GenieConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file(start_dir)
        if path is None:
            logger.debug("No %s found, using defaults", GENIE_CONFIG_FILE)
            return GenieConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading genie config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return GenieConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "genie" key or be flat
    config_data = data["genie"] if isinstance(data.get("genie"), dict) else data

    try:
        config = GenieConfig.model_validate(config_data)
    except Exception as e:
        raise ConfigError(f"Invalid genie configuration in {path}: {e}") from e

    logger.info("Loaded genie config from %s", path)
    return config


def resolve_import_map(config_path: Path, config: GenieConfig) -> dict[str, Path]:
    """Turn the ``imports:`` section into absolute directories.

    Entries are relative to the directory holding the config file.
    """
    base = config_path.parent.resolve()
    return {alias: (base / target).resolve() for alias, target in config.imports.items()}
