"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from signal_core.models.config import EngineConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field can be set as ``SIGNAL_ENGINE_<FIELD>`` in the environment
    or in a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SIGNAL_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Scheduler
    tick_interval: float = Field(default=1.0, gt=0)  # seconds between evaluation ticks
    max_workers: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"

    # Subscriptions
    subscriptions_file: Path = Path("subscriptions.yaml")

    # Engine defaults (per-subscription overrides win)
    default_timeframe: str = "5m"
    lookback: int = Field(default=500, ge=1)
    adx_threshold: float = Field(default=25.0, ge=0, le=100)
    confluence_threshold: float = Field(default=40.0, ge=0, le=100)
    consensus_threshold: float = Field(default=70.0, gt=0, le=100)
    persistence_threshold: int = Field(default=3, ge=1)

    def engine_config(self, **overrides) -> EngineConfig:
        """Build an EngineConfig from the defaults plus ``overrides``.

        Raises:
            ValueError: If a value (or the timeframe) is invalid
        """
        return EngineConfig(
            timeframe=self.default_timeframe,
            lookback=self.lookback,
            adx_threshold=self.adx_threshold,
            confluence_threshold=self.confluence_threshold,
            consensus_threshold=self.consensus_threshold,
            persistence_threshold=self.persistence_threshold,
        ).with_overrides(**overrides)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
