"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml
and falls back to built-in defaults when the file is missing.

Usage:
    from bloomtrack.config.app_config import load_app_config

    config = load_app_config()
    weights = config.mastery.blooms_weights
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from bloomtrack.core.blooms import BLOOMS_LEVEL_ORDER, BloomsLevel, parse_level

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

DB_PATH_ENV = "BLOOMTRACK_DB_PATH"

DEFAULT_BLOOMS_WEIGHTS: dict[BloomsLevel, float] = {
    BloomsLevel.REMEMBER: 0.10,
    BloomsLevel.UNDERSTAND: 0.15,
    BloomsLevel.APPLY: 0.20,
    BloomsLevel.ANALYZE: 0.20,
    BloomsLevel.EVALUATE: 0.15,
    BloomsLevel.CREATE: 0.20,
}


class ConfigError(Exception):
    """Invalid configuration values."""

    pass


@dataclass
class DecayConfig:
    """Time-based decay of mastery scores."""

    enabled: bool = True
    decay_rate_per_day: float = 0.5  # percentage points lost per day
    grace_period_days: int = 7
    minimum_level: float = 20.0


@dataclass
class MasteryConfig:
    """Weights and thresholds for mastery calculation."""

    blooms_weights: dict[BloomsLevel, float] = field(
        default_factory=lambda: dict(DEFAULT_BLOOMS_WEIGHTS)
    )
    recent_assessment_weight: float = 0.3
    mastered_threshold: float = 80.0
    gap_threshold: float = 60.0
    level_thresholds: dict[str, float] = field(
        default_factory=lambda: {
            "expert": 90.0,
            "advanced": 80.0,
            "proficient": 70.0,
            "developing": 60.0,
        }
    )
    decay: DecayConfig = field(default_factory=DecayConfig)


@dataclass
class ApiConfig:
    """Web API settings."""

    title: str = "Bloomtrack API"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class AppConfig:
    """Application-wide configuration."""

    mastery: MasteryConfig = field(default_factory=MasteryConfig)
    paths: dict[str, str] = field(default_factory=dict)
    api: ApiConfig = field(default_factory=ApiConfig)

    @property
    def db_path(self) -> Path:
        """Database path, honoring the BLOOMTRACK_DB_PATH override."""
        override = os.environ.get(DB_PATH_ENV)
        if override:
            return Path(override)
        return Path(self.paths.get("db_path", "db/bloomtrack.db"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "mastery": {
            "blooms_weights": {
                level.value: weight for level, weight in DEFAULT_BLOOMS_WEIGHTS.items()
            },
            "recent_assessment_weight": 0.3,
            "mastered_threshold": 80.0,
            "gap_threshold": 60.0,
            "level_thresholds": {
                "expert": 90.0,
                "advanced": 80.0,
                "proficient": 70.0,
                "developing": 60.0,
            },
            "decay": {
                "enabled": True,
                "decay_rate_per_day": 0.5,
                "grace_period_days": 7,
                "minimum_level": 20.0,
            },
        },
        "paths": {
            "db_path": "db/bloomtrack.db",
            "config_dir": "data/config",
        },
        "api": {
            "title": "Bloomtrack API",
            "cors_origins": ["*"],
        },
    }


def _parse_weights(data: dict[str, Any] | None) -> dict[BloomsLevel, float]:
    """Parse blooms_weights, filling missing levels with defaults."""
    weights = dict(DEFAULT_BLOOMS_WEIGHTS)
    for key, value in (data or {}).items():
        try:
            level = parse_level(key)
        except ValueError as e:
            raise ConfigError(f"Unknown Bloom's level in weights: {key}") from e
        weight = float(value)
        if weight < 0:
            raise ConfigError(f"Weight for {level.value} must be >= 0, got {weight}")
        weights[level] = weight
    return {level: weights[level] for level in BLOOMS_LEVEL_ORDER}


def parse_mastery_config(data: dict[str, Any] | None) -> MasteryConfig:
    """Parse the mastery section into a MasteryConfig.

    Raises:
        ConfigError: If weights or ratios are out of range.
    """
    data = data or {}
    defaults = MasteryConfig()

    recent_weight = float(
        data.get("recent_assessment_weight", defaults.recent_assessment_weight)
    )
    if not 0 < recent_weight <= 1:
        raise ConfigError(
            f"recent_assessment_weight must be in (0, 1], got {recent_weight}"
        )

    decay_data = data.get("decay", {}) or {}
    decay = DecayConfig(
        enabled=bool(decay_data.get("enabled", True)),
        decay_rate_per_day=float(decay_data.get("decay_rate_per_day", 0.5)),
        grace_period_days=int(decay_data.get("grace_period_days", 7)),
        minimum_level=float(decay_data.get("minimum_level", 20.0)),
    )
    if decay.decay_rate_per_day < 0:
        raise ConfigError("decay_rate_per_day must be >= 0")

    thresholds = dict(defaults.level_thresholds)
    thresholds.update(
        {k: float(v) for k, v in (data.get("level_thresholds") or {}).items()}
    )

    return MasteryConfig(
        blooms_weights=_parse_weights(data.get("blooms_weights")),
        recent_assessment_weight=recent_weight,
        mastered_threshold=float(
            data.get("mastered_threshold", defaults.mastered_threshold)
        ),
        gap_threshold=float(data.get("gap_threshold", defaults.gap_threshold)),
        level_thresholds=thresholds,
        decay=decay,
    )


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    api_data = data.get("api", {}) or {}
    api = ApiConfig(
        title=api_data.get("title", "Bloomtrack API"),
        cors_origins=list(api_data.get("cors_origins", ["*"])),
    )

    return AppConfig(
        mastery=parse_mastery_config(data.get("mastery")),
        paths=data.get("paths", {}) or {},
        api=api,
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_mastery_config() -> MasteryConfig:
    """Get the mastery section of the application config."""
    return load_app_config().mastery


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
