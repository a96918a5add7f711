"""
modhost Configuration - TOML-based host configuration.

This module provides:
- HostConfig, the validated host settings
- Config file lookup (explicit path, MODHOST_CONFIG, config/modhost.toml)
- Environment variable overrides
- Default config file generation

Example usage:
    from modhost.config import load_config

    config = load_config()           # defaults + file + environment
    print(config.cache_path)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from modhost.config.schema import (
    HOST_SCHEMA,
    ConfigField,
    SchemaError,
    ValidationError,
    generate_default_config,
    validate_config,
)
from modhost.config.toml_handler import (
    TOMLError,
    generate_toml_from_schema,
    read_toml,
    write_toml,
)

logger = logging.getLogger(__name__)

SECTION = "modhost"
CONFIG_ENV = "MODHOST_CONFIG"
DEFAULT_CONFIG_FILE = Path("config/modhost.toml")

# Environment variable -> (field, kind)
_ENV_OVERRIDES = {
    "MODHOST_BASE": ("base_dir", "replace"),
    "MODHOST_CACHE": ("cache_dir", "replace"),
    "MODHOST_MODULES": ("modules", "append"),
    "MODHOST_EXTENSIONS": ("extensions", "append"),
    "MODHOST_LOG_FORMAT": ("log_format", "replace"),
    "MODHOST_BANNER": ("banner", "replace"),
}


class ConfigError(Exception):
    """Raised when the host configuration cannot be loaded."""

    pass


@dataclass
class ApplicationConfig:
    """
    A top-level application started at boot.

    Attributes:
        url: Artifact locator of the application
        type: Optional module type hint
        properties: Properties passed on install
    """

    url: str
    type: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class HostConfig:
    """
    Validated host settings.

    Attributes mirror the [modhost] table; see HOST_SCHEMA for defaults.
    """

    base_dir: str = "."
    cache_dir: str = ".modhost/cache"
    clear_cache: bool = False
    repositories: list[str] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)
    extensions: list[str] = field(default_factory=list)
    strict_module_types: bool = False
    download_timeout: float = 60.0
    log_level: str = "INFO"
    log_format: str = HOST_SCHEMA["log_format"].default
    banner: str = ""
    applications: list[ApplicationConfig] = field(default_factory=list)
    module_defaults: dict[str, Any] = field(default_factory=dict)
    source: Path | None = None

    @property
    def base_path(self) -> Path:
        """Absolute base directory."""
        return Path(self.base_dir).expanduser().resolve()

    @property
    def cache_path(self) -> Path:
        """Absolute cache directory."""
        cache = Path(self.cache_dir).expanduser()
        if not cache.is_absolute():
            cache = self.base_path / cache
        return cache


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> HostConfig:
    """
    Load the host configuration.

    The file is taken from path, else MODHOST_CONFIG, else
    config/modhost.toml; without a file the defaults apply. Environment
    overrides are applied last.

    Args:
        path: Explicit configuration file
        environ: Environment to read overrides from (defaults to os.environ)

    Returns:
        HostConfig

    Raises:
        ConfigError: If the file is missing (when named explicitly),
            unreadable or invalid
    """
    environ = os.environ if environ is None else environ

    config_file = None
    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigError(f"Configuration file not found: {config_file}")
    elif environ.get(CONFIG_ENV):
        config_file = Path(environ[CONFIG_ENV])
        if not config_file.exists():
            logger.warning("%s %s doesn't exist", CONFIG_ENV, config_file)
            config_file = None
    elif DEFAULT_CONFIG_FILE.exists():
        config_file = DEFAULT_CONFIG_FILE

    table: dict[str, Any] = {}
    if config_file is not None:
        logger.info("Reading configuration %s", config_file)
        try:
            table = read_toml(config_file).get(SECTION, {})
        except TOMLError as e:
            raise ConfigError(str(e)) from e
        if not isinstance(table, dict):
            raise ConfigError(f"[{SECTION}] must be a table in {config_file}")

    try:
        values = validate_config(table)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration {config_file}: {e}") from e

    _apply_env_overrides(values, environ)

    return HostConfig(
        **values,
        applications=_parse_applications(table.get("applications", [])),
        module_defaults=_parse_module_defaults(table.get("module_defaults", {})),
        source=config_file,
    )


def write_default_config(path: Path | str) -> Path:
    """
    Write a commented default configuration file.

    Args:
        path: Target file

    Returns:
        The written path

    Raises:
        ConfigError: If the file already exists or cannot be written
    """
    target = Path(path)
    if target.exists():
        raise ConfigError(f"Refusing to overwrite existing file: {target}")
    try:
        write_toml(target, generate_toml_from_schema(SECTION, HOST_SCHEMA))
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    return target


def _apply_env_overrides(values: dict[str, Any], environ: Mapping[str, str]) -> None:
    for variable, (field_name, kind) in _ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if not raw:
            continue
        if kind == "append":
            values[field_name] = values[field_name] + [
                item.strip() for item in raw.split(",") if item.strip()
            ]
        else:
            values[field_name] = raw


def _parse_applications(raw: Any) -> list[ApplicationConfig]:
    if not isinstance(raw, list):
        raise ConfigError("'applications' must be an array of tables")

    applications = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("url"), str):
            raise ConfigError(f"Application entry needs a 'url' string: {entry!r}")
        app_type = entry.get("type")
        if app_type is not None and not isinstance(app_type, str):
            raise ConfigError(f"Application 'type' must be a string: {entry!r}")
        properties = entry.get("properties", {})
        if not isinstance(properties, dict):
            raise ConfigError(f"Application 'properties' must be a table: {entry!r}")
        applications.append(
            ApplicationConfig(url=entry["url"], type=app_type, properties=dict(properties))
        )
    return applications


def _parse_module_defaults(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ConfigError("'module_defaults' must be a table")
    return dict(raw)


__all__ = [
    "ApplicationConfig",
    "ConfigError",
    "ConfigField",
    "HostConfig",
    "SchemaError",
    "ValidationError",
    "generate_default_config",
    "load_config",
    "write_default_config",
]
