"""
Configuration loader — reads deskboot.yml into option models.

The file is optional: without one, every setting has a default.  CLI
flags are merged on top by ``resolve_options`` to produce the immutable
PlanOptions a run is built from.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from deskboot.core.errors import ConfigError
from deskboot.core.models.options import BootstrapConfig, PlanOptions

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "deskboot.yml"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for deskboot.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to deskboot.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, search: bool = True) -> BootstrapConfig:
    """Load and validate the configuration file.

    Args:
        path: Explicit path to deskboot.yml.  If None and ``search`` is
            set, searches upward from the cwd; no file means defaults.
        search: Whether to look for a file when no path is given.

    Returns:
        Validated BootstrapConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file() if search else None
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return BootstrapConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = BootstrapConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s (theme '%s')", path, config.theme)
    return config


def _expand(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def resolve_options(
    config: BootstrapConfig | None = None,
    *,
    home: Path | None = None,
    **overrides: Any,
) -> PlanOptions:
    """Merge file configuration with CLI overrides into PlanOptions.

    Overrides whose value is None are ignored, so unset CLI flags never
    clobber file values.

    Raises:
        ConfigError: If the merged values do not validate.
    """
    config = config or BootstrapConfig()
    data: dict[str, Any] = config.model_dump(
        exclude={"build_root", "backup_root", "dotfiles_dir"},
    )
    data["build_root"] = _expand(config.build_root)
    data["backup_root"] = _expand(config.backup_root)
    data["dotfiles_dir"] = _expand(config.dotfiles_dir)
    data["home"] = home
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return PlanOptions.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid options: {e}") from e
