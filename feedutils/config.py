"""Configuration for feedutils.

Paths are resolved from environment variables once, at startup, and the
resulting Config is passed explicitly to everything that needs it.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DATABASE_FILENAME = "feedutils.tsv"
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when a required path cannot be derived from the environment."""


@dataclass
class Config:
    """Resolved runtime configuration."""

    database_path: Path
    config_dir: Path
    log_level: str = DEFAULT_LOG_LEVEL


def _get_database_path(environ: Mapping[str, str]) -> Path:
    # Checked in order; the file itself need not exist yet.
    if environ.get("FEEDUTILS_DB"):
        return Path(environ["FEEDUTILS_DB"])
    if environ.get("XDG_DATA_HOME"):
        return Path(environ["XDG_DATA_HOME"]) / DATABASE_FILENAME
    if environ.get("HOME"):
        return Path(environ["HOME"]) / ".local" / "share" / DATABASE_FILENAME
    raise ConfigError("No env var set for database path")


def _get_config_dir(environ: Mapping[str, str]) -> Path:
    if environ.get("FEEDUTILS_CONFIGDIR"):
        return Path(environ["FEEDUTILS_CONFIGDIR"])
    if environ.get("XDG_CONFIG_HOME"):
        return Path(environ["XDG_CONFIG_HOME"]) / "feeds"
    if environ.get("HOME"):
        return Path(environ["HOME"]) / ".config" / "feeds"
    raise ConfigError("No env var set for feed configuration directory")


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build a Config from the environment.

    Args:
        environ: Mapping to read variables from (defaults to os.environ)

    Returns:
        Resolved Config

    Raises:
        ConfigError: If neither an explicit path nor HOME is available, or
            FEEDUTILS_LOG_LEVEL is not a logging level name
    """
    if environ is None:
        environ = os.environ

    log_level = environ.get("FEEDUTILS_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Invalid log level: {log_level}")

    return Config(
        database_path=_get_database_path(environ),
        config_dir=_get_config_dir(environ),
        log_level=log_level,
    )
