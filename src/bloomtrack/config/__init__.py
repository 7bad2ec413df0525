"""Configuration package for bloomtrack."""

from bloomtrack.config.app_config import (
    AppConfig,
    ConfigError,
    DecayConfig,
    MasteryConfig,
    clear_config_cache,
    get_mastery_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "ConfigError",
    "DecayConfig",
    "MasteryConfig",
    "clear_config_cache",
    "get_mastery_config",
    "load_app_config",
]
