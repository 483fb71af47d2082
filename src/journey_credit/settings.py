"""Engine thresholds loaded from the environment or ``.env``."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Tunable limits for validation, scoring and the processing budget.

    Every value can be overridden with an ``ATTRIBUTION_``-prefixed variable,
    e.g. ``ATTRIBUTION_CONFIDENCE_FLOOR=0.9``.
    """

    max_window_days: int = Field(90, ge=1, description="Longest allowed attribution window")
    confidence_floor: float = Field(0.95, ge=0.0, le=1.0, description="Score needed for 'valid'")
    partial_ratio: float = Field(
        0.8, ge=0.0, le=1.0, description="Fraction of the floor needed for 'partial'"
    )
    sla_seconds: float = Field(5.0, gt=0.0, description="Soft per-journey processing budget")
    weight_tolerance: float = Field(1e-4, gt=0.0, description="Allowed drift from a sum of 1.0")
    timeliness_horizon_days: int = Field(90, ge=1, description="Age at which timeliness hits 0")
    min_half_life_days: int = Field(1, ge=1)
    max_half_life_days: int = Field(30, ge=1)
    model_version: str = "1.0.0"

    model_config = SettingsConfigDict(
        env_prefix="ATTRIBUTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def partial_floor(self) -> float:
        return self.confidence_floor * self.partial_ratio


@lru_cache
def get_settings() -> EngineSettings:
    """Return cached settings instance."""
    return EngineSettings()
