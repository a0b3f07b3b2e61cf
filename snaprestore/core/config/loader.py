"""
Configuration loader — reads snaprestore.yml into a RestoreConfig.

The file is optional: every setting has a default, and the restore
host can also be given on the command line. Lookup order:

    --config-file  >  $SNAPRESTORE_CONFIG  >  snaprestore.yml (walking up
    from the cwd)  >  /etc/snaprestore/snaprestore.yml
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILE = "snaprestore.yml"
CONFIG_ENV = "SNAPRESTORE_CONFIG"
SYSTEM_CONFIG = Path("/etc/snaprestore") / CONFIG_FILE


class ConfigError(Exception):
    """Raised when the configuration file is invalid or unreadable."""


class RestoreConfig(BaseModel):
    """Settings shared by every restore run."""

    restore_host: str = ""
    data_dir: str = "data"
    remote_root_dir: str = "/"
    remote_data_user_dir: str = "/data/user"
    backup_utils_version: str = ""

    ssh_command: list[str] = Field(default_factory=lambda: ["ssh"])
    ssh_options: list[str] = Field(default_factory=list)
    tools_dir: str | None = None
    tool_timeout: float | None = None

    # Set by the loader, not read from YAML
    source: str | None = Field(default=None, exclude=True)

    def data_path(self) -> Path:
        """data_dir, relative to the config file that set it."""
        path = Path(self.data_dir).expanduser()
        if not path.is_absolute() and self.source:
            path = Path(self.source).parent / path
        return path


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for snaprestore.yml starting from the given directory, walking up.

    Falls back to the system-wide file.

    Returns:
        Path to the config file, or None if not found.
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

    if SYSTEM_CONFIG.is_file():
        return SYSTEM_CONFIG
    return None


def load_config(path: Path | None = None, start_dir: Path | None = None) -> RestoreConfig:
    """Load and validate restore configuration.

    Args:
        path: Explicit config file. Must exist when given.
        start_dir: Where to start the upward search (default: cwd).

    Returns:
        Validated RestoreConfig; defaults if no file is found.

    Raises:
        ConfigError: If the file is missing (when explicit) or invalid.
    """
    if path is None and os.environ.get(CONFIG_ENV):
        path = Path(os.environ[CONFIG_ENV])

    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = find_config_file(start_dir)
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return RestoreConfig()

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

    # The file may wrap everything under a "restore" key or be flat
    if isinstance(data.get("restore"), dict):
        data = data["restore"]

    try:
        config = RestoreConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    config.source = str(path)
    logger.info("Loaded config from %s", path)
    return config
