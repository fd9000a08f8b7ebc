"""Application configuration using Pydantic Settings.

Loads configuration from environment variables and .env files.
Every value the classification engine uses is exposed here so tests and
callers can override it without touching module-level constants.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    include_timestamp: bool = True
    include_caller: bool = True


class ModelSettings(BaseSettings):
    """Neural model architecture and training configuration."""

    model_config = SettingsConfigDict(env_prefix="MODEL_", protected_namespaces=())

    # Synthetic corpus
    training_samples: int = Field(default=1000, ge=8, le=1_000_000)

    # Optimisation
    epochs: int = Field(default=50, ge=1, le=10_000)
    batch_size: int = Field(default=32, ge=1, le=65_536)
    learning_rate: float = Field(default=0.001, gt=0.0, le=1.0)

    # Architecture
    classifier_hidden_units: list[int] = Field(default_factory=lambda: [64, 32, 16])
    dropout_rates: list[float] = Field(default_factory=lambda: [0.3, 0.2])
    encoder_units: list[int] = Field(default_factory=lambda: [16, 8, 4])

    # Reproducibility
    seed: int | None = None

    # Persistence (disabled by default: retrain on every construction)
    model_path: Path | None = None
    save_trained_model: bool = False

    @field_validator("classifier_hidden_units", "encoder_units")
    @classmethod
    def validate_units(cls, v: list[int]) -> list[int]:
        """Ensure every layer has at least one unit."""
        if not v or any(units < 1 for units in v):
            raise ValueError("layer sizes must be a non-empty list of positive integers")
        return v

    @field_validator("dropout_rates")
    @classmethod
    def validate_dropout(cls, v: list[float]) -> list[float]:
        """Ensure dropout rates are valid probabilities."""
        if any(not 0.0 <= rate < 1.0 for rate in v):
            raise ValueError("dropout rates must be in [0, 1)")
        return v


class EngineSettings(BaseSettings):
    """Classification engine configuration."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    # Reconstruction error at or above this is flagged anomalous. A tunable
    # constant, not a statistically fitted cutoff.
    anomaly_threshold: float = Field(default=0.1, ge=0.0)

    # Maximum retained classification results
    history_size: int = Field(default=100, ge=1, le=100_000)


class MonitorSettings(BaseSettings):
    """Simulated traffic monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_")

    interval_ms: int = Field(default=2000, ge=1)
    high_bandwidth_threshold: float = Field(default=5_000_000, ge=0)
    history_window: int = Field(default=50, ge=1)


class Settings(BaseSettings):
    """Main application settings aggregating all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        protected_namespaces=(),
    )

    # Application info
    app_name: str = "TrafficLens"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Sub-configurations
    model: ModelSettings = Field(default_factory=ModelSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
