"""Configuration management for masterq.

Provides centralized configuration with TOML support, validation and
hierarchical loading from defaults → config file → environment.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import toml

from masterq.models import (
    Config,
    GameServerConfig,
    MasterConfig,
    ObservabilityConfig,
)
from masterq.utils.exceptions import ConfigurationError
from masterq.utils.logging_config import setup_logging

# Global configuration instance
_config_manager: ConfigManager | None = None

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Master server
    "MASTERQ_MASTER_HOST": "master.host",
    "MASTERQ_MASTER_PORT": "master.port",
    "MASTERQ_RETRIES": "master.retries",
    "MASTERQ_TIMEOUT": "master.timeout",
    "MASTERQ_REGION": "master.region",
    # Game server
    "MASTERQ_GAME_TIMEOUT": "game.timeout",
    "MASTERQ_GAME_RETRIES": "game.retries",
    # Observability
    "MASTERQ_LOG_LEVEL": "observability.log_level",
    "MASTERQ_LOG_FILE": "observability.log_file",
    "MASTERQ_STRUCTURED_LOGGING": "observability.structured_logging",
    "MASTERQ_LOG_CORRELATION_ID": "observability.log_correlation_id",
}

# Values that must stay strings even when they look numeric
_STRING_PATHS = frozenset({"master.host", "observability.log_file"})


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for masterq.toml

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._setup_logging()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / "masterq.toml",
            Path.home() / ".config" / "masterq" / "masterq.toml",
            Path.home() / ".masterq.toml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg) from e

        env_config = self._get_env_config()
        config_data = self._merge_config(config_data, env_config)

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str, path: str) -> Any:
            if path in _STRING_PATHS:
                return raw
            low = raw.lower()
            if low in {"true", "1", "yes", "on"} and path.startswith("observability."):
                return True
            if low in {"false", "0", "no", "off"} and path.startswith("observability."):
                return False
            try:
                if "." in raw:
                    return float(raw)
                return int(raw)
            except ValueError:
                return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def export(self) -> str:
        """Export current configuration as TOML."""
        data = self.config.model_dump(mode="json", exclude_none=True)
        try:
            return toml.dumps(data)
        except Exception as e:
            msg = f"Failed to export TOML: {e}"
            raise ConfigurationError(msg) from e

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()  # noqa: SLF001
    _config_manager._setup_logging()  # noqa: SLF001
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Fetches already in progress keep the values they started with.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001


def set_retries(retries: int) -> None:
    """Set the default send attempts per page for fetches started afterwards.

    Raises:
        ConfigurationError: If ``retries`` is not a positive integer

    """
    config = get_config()
    try:
        master = MasterConfig(**{**config.master.model_dump(), "retries": retries})
    except Exception as e:
        msg = f"Invalid retry count: {retries!r}"
        raise ConfigurationError(msg) from e
    set_config(config.model_copy(update={"master": master}))
    logging.getLogger(__name__).debug("Default retries set to %d", retries)


def get_master_config() -> MasterConfig:
    """Get master server configuration."""
    return get_config().master


def get_game_config() -> GameServerConfig:
    """Get game server configuration."""
    return get_config().game


def get_observability_config() -> ObservabilityConfig:
    """Get observability configuration."""
    return get_config().observability
