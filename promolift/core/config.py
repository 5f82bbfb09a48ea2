"""
Configuration management for PROMOLIFT.

Loads settings from environment variables and YAML config files.
Uses pydantic for validation.

Priority order:
1. Environment variables (PROMOLIFT_*)
2. .env file
3. Field defaults
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promolift.core.constants import (
    DEFAULT_CALCULATION_TIMEOUT_SECONDS,
    DEFAULT_DRIFT_THRESHOLD_PCT,
    DEFAULT_EFFECT_RATES,
    EFFICIENCY_WEIGHTS,
    LIFT_NORMALIZATION_CAP,
    MAX_MOVING_AVERAGE_WINDOW,
    ROI_NORMALIZATION_CAP,
    ROI_NORMALIZATION_FLOOR,
    SMOOTHING_GRID,
)
from promolift.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Paths and the sales API endpoint are loaded from .env file or environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMOLIFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory for data storage",
    )
    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML config files",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Calculation
    calculation_timeout_seconds: float = Field(
        default=DEFAULT_CALCULATION_TIMEOUT_SECONDS,
        gt=0,
        description="Wall-clock budget for a single baseline calculation",
    )

    # Host REST layer (optional)
    api_base_url: str | None = Field(
        default=None,
        description="Base URL of the sales/promotion REST API",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token for the REST API",
    )

    @field_validator("data_dir", "config_dir", mode="before")
    @classmethod
    def resolve_path(cls, v: str | Path) -> Path:
        """Convert string to Path and resolve."""
        return Path(v).resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure log level is uppercase."""
        return v.upper()

    @property
    def baselines_dir(self) -> Path:
        """Directory for baseline records and decompositions."""
        return self.data_dir / "baselines"

    @property
    def engine_config_path(self) -> Path:
        return self.config_dir / "engine.yaml"


class EfficiencyPolicy(BaseModel):
    """Weights and normalization caps for the efficiency score."""

    lift_weight: float = Field(default=EFFICIENCY_WEIGHTS["lift"], ge=0)
    roi_weight: float = Field(default=EFFICIENCY_WEIGHTS["roi"], ge=0)
    leakage_weight: float = Field(default=EFFICIENCY_WEIGHTS["leakage"], ge=0)
    lift_cap_pct: float = Field(default=LIFT_NORMALIZATION_CAP, gt=0)
    roi_floor: float = ROI_NORMALIZATION_FLOOR
    roi_cap: float = ROI_NORMALIZATION_CAP

    @model_validator(mode="after")
    def check_policy(self) -> "EfficiencyPolicy":
        total = self.lift_weight + self.roi_weight + self.leakage_weight
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Efficiency weights must sum to 1.0, got {total}")
        if self.roi_cap <= self.roi_floor:
            raise ValueError("roi_cap must be greater than roi_floor")
        return self


class EngineConfig(BaseModel):
    """Engine tuning loaded from engine.yaml."""

    efficiency: EfficiencyPolicy = Field(default_factory=EfficiencyPolicy)
    default_rates: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_EFFECT_RATES))
    max_moving_average_window: int = Field(default=MAX_MOVING_AVERAGE_WINDOW, ge=1)
    smoothing_grid: tuple[float, ...] = SMOOTHING_GRID
    drift_threshold_pct: float = Field(default=DEFAULT_DRIFT_THRESHOLD_PCT, gt=0)

    @field_validator("default_rates")
    @classmethod
    def rates_in_unit_interval(cls, v: dict[str, float]) -> dict[str, float]:
        for name, rate in v.items():
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {rate}")
        return v

    @field_validator("smoothing_grid")
    @classmethod
    def grid_inside_open_interval(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if not v or any(not 0.0 < a < 1.0 for a in v):
            raise ValueError("smoothing_grid values must lie in (0, 1)")
        return v


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        path: YAML file (defaults to <config_dir>/engine.yaml)

    Returns:
        EngineConfig; built-in defaults when the file does not exist
    """
    path = path or get_settings().engine_config_path
    if not path.exists():
        return EngineConfig()

    try:
        return EngineConfig.model_validate(_load_yaml(path).get("engine", {}))
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(f"Invalid engine config {path}: {e}", stage="config") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
