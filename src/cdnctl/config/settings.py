"""
Configuration settings management for cdnctl.

This module handles loading and validating tool settings from a YAML file
with support for environment variable overrides. Settings are kept apart from
the credential profiles file so that profiles can be shared or regenerated
without touching tool behaviour.

Settings are loaded from ~/.config/cdnctl/settings.yaml by default, with the
path overridable via the CDNCTL_SETTINGS environment variable.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "cdnctl"
DEFAULT_SETTINGS_FILE = DEFAULT_CONFIG_DIR / "settings.yaml"
DEFAULT_PROFILES_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

CDN_API_URL = "https://cdn-api.swiftfederation.com"
BASE_API_URL = "https://base-api.swiftfederation.com"

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class EndpointConfig:
    """Provider API base URLs."""

    cdn_api: str = CDN_API_URL
    base_api: str = BASE_API_URL


@dataclass
class Settings:
    """
    Complete cdnctl configuration settings.

    Attributes:
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        timeout_seconds: Client-side HTTP timeout for a single API call.
        profiles_file: Path of the YAML file holding credential profiles.
        endpoints: Provider API base URLs.
    """

    log_level: str = "WARNING"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    profiles_file: str = str(DEFAULT_PROFILES_FILE)

    endpoints: EndpointConfig = field(default_factory=EndpointConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_settings_path() -> Path:
    """
    Get the settings file path.

    Returns the path from CDNCTL_SETTINGS environment variable if set,
    otherwise returns the default path (~/.config/cdnctl/settings.yaml).
    """
    env_path = os.environ.get("CDNCTL_SETTINGS")
    if env_path:
        return Path(env_path)
    return DEFAULT_SETTINGS_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load settings from YAML file.

    A missing settings file is not an error: defaults are used and
    environment overrides still apply.

    Args:
        config_path: Optional path to settings file. If not provided,
                    uses CDNCTL_SETTINGS environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the settings file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_settings_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in settings file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read settings file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping: {config_path}"
            )

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    cdnctl_data = data.get("cdnctl") or {}

    if "log_level" in cdnctl_data:
        settings.log_level = str(cdnctl_data["log_level"]).upper()
    if "timeout_seconds" in cdnctl_data:
        settings.timeout_seconds = _to_float(
            cdnctl_data["timeout_seconds"], "timeout_seconds"
        )
    if "profiles_file" in cdnctl_data:
        settings.profiles_file = str(
            Path(str(cdnctl_data["profiles_file"])).expanduser()
        )

    endpoints = data.get("endpoints") or {}
    if "cdn_api" in endpoints:
        settings.endpoints.cdn_api = str(endpoints["cdn_api"])
    if "base_api" in endpoints:
        settings.endpoints.base_api = str(endpoints["base_api"])

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "CDNCTL_LOG_LEVEL": ("log_level", str.upper),
        "CDNCTL_TIMEOUT": ("timeout_seconds", lambda x: _to_float(x, "CDNCTL_TIMEOUT")),
        "CDNCTL_PROFILES_FILE": ("profiles_file", lambda x: str(Path(x).expanduser())),
        "CDNCTL_CDN_API_URL": ("endpoints.cdn_api", str),
        "CDNCTL_BASE_API_URL": ("endpoints.base_api", str),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _to_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got: {value!r}") from e


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if settings.timeout_seconds <= 0:
        raise ConfigurationError("timeout_seconds must be greater than 0")

    for name in ("cdn_api", "base_api"):
        url = getattr(settings.endpoints, name)
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid {name} endpoint URL: {url!r}")
