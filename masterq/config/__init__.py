"""Configuration management.

This module handles configuration loading and validation.
"""

from __future__ import annotations

from masterq.config.config import (
    Config,
    ConfigManager,
    get_config,
    get_game_config,
    get_master_config,
    init_config,
    reload_config,
    set_config,
    set_retries,
)

__all__ = [
    "Config",
    "ConfigManager",
    "get_config",
    "get_game_config",
    "get_master_config",
    "init_config",
    "reload_config",
    "set_config",
    "set_retries",
]
