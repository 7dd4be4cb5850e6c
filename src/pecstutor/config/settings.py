"""Configuration model for PECS Tutor."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


def _default_data_dir() -> Path:
    env = os.environ.get("PECSTUTOR_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".pecstutor"


class AdaptiveSettings(BaseModel):
    """Bounds and thresholds for the adaptive difficulty controller.

    Difficulty is the number of picture cards shown at once. The thresholds
    straddle the target success rate; rates between them form the hysteresis
    band in which no adjustment happens.
    """

    model_config = ConfigDict(frozen=True)

    min_array_size: int = Field(default=2, ge=1)
    max_array_size: int = Field(default=5, ge=1)
    current_array_size: int = 2

    target_success_rate: float = Field(default=0.80, ge=0.0, le=1.0)
    window_size: int = Field(default=10, ge=1)
    increase_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    decrease_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    min_trials_before_adjust: int = Field(default=5, ge=1)

    trend_margin: float = Field(default=0.1, gt=0.0, le=1.0)
    trend_noise_floor: bool = True
    history_multiplier: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _check_ordering(self) -> "AdaptiveSettings":
        if self.max_array_size < self.min_array_size:
            raise ValueError(
                f"max_array_size ({self.max_array_size}) must be >= "
                f"min_array_size ({self.min_array_size})"
            )
        if not self.min_array_size <= self.current_array_size <= self.max_array_size:
            raise ValueError(
                f"current_array_size ({self.current_array_size}) must lie in "
                f"[{self.min_array_size}, {self.max_array_size}]"
            )
        if not self.decrease_threshold < self.target_success_rate < self.increase_threshold:
            raise ValueError(
                "thresholds must satisfy decrease_threshold < target_success_rate "
                f"< increase_threshold (got {self.decrease_threshold} < "
                f"{self.target_success_rate} < {self.increase_threshold})"
            )
        if self.min_trials_before_adjust > self.window_size:
            raise ValueError(
                f"min_trials_before_adjust ({self.min_trials_before_adjust}) cannot "
                f"exceed window_size ({self.window_size}); difficulty would never change"
            )
        return self

    @property
    def history_limit(self) -> int:
        """Number of trials retained in state history."""
        return self.window_size * self.history_multiplier

    def clamp(self, difficulty: int) -> int:
        return max(self.min_array_size, min(self.max_array_size, int(difficulty)))

    def with_overrides(self, **overrides) -> "AdaptiveSettings":
        """Return a new, re-validated instance with some fields replaced."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return AdaptiveSettings(**data)


class Settings(BaseModel):
    adaptive: AdaptiveSettings = Field(default_factory=AdaptiveSettings)
    data_dir: Path = Field(default_factory=_default_data_dir)
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "activity.db"

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Settings":
        config_path = config_path or (_default_data_dir() / "config.yaml")
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)
