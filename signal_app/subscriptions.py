"""Subscriptions loaded from subscriptions.yaml.

Example::

    subscriptions:
      - asset: BTC
        timeframe: 5m
      - asset: ${SECOND_ASSET}
        timeframe: 15m
        overrides:
          adx_threshold: 30
          persistence_threshold: 2

Environment variables in asset names are expanded; a ``.env`` file next to
the YAML file is loaded first. Every entry is validated at load time, so a
bad timeframe or override fails before the scheduler starts.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from signal_core.models.config import EngineConfig
from signal_core.timeframes import normalize_timeframe

logger = logging.getLogger(__name__)


class SubscriptionEntry(BaseModel):
    """One (asset, timeframe) to evaluate on every tick."""

    asset: str
    timeframe: str = "5m"
    enabled: bool = True
    overrides: dict[str, Any] = {}

    @field_validator("asset")
    @classmethod
    def _expand_asset(cls, value: str) -> str:
        asset = os.path.expandvars(value).strip()
        if not asset or "$" in asset:
            raise ValueError(f"asset must be a non-empty symbol, got '{value}'")
        return asset

    @field_validator("timeframe")
    @classmethod
    def _validate_timeframe(cls, value: str) -> str:
        return normalize_timeframe(value)

    def to_engine_config(self, base: EngineConfig | None = None) -> EngineConfig:
        """Resolve this entry against ``base`` (or the default EngineConfig)."""
        base = base or EngineConfig()
        return base.with_overrides(**{**self.overrides, "timeframe": self.timeframe})


class SubscriptionsConfig(BaseModel):
    """Top-level subscriptions.yaml configuration."""

    subscriptions: list[SubscriptionEntry] = []

    def get_enabled(self) -> list[SubscriptionEntry]:
        return [s for s in self.subscriptions if s.enabled]


def load_subscriptions(path: Path, base: EngineConfig | None = None) -> SubscriptionsConfig:
    """Load and validate subscriptions from a YAML file.

    Falls back to an empty config if the file doesn't exist.

    Raises:
        ValueError: If an entry has an invalid timeframe or override
    """
    load_dotenv(path.parent / ".env", override=False)

    if not path.exists():
        logger.info(f"No subscriptions file found at {path}, starting with none")
        return SubscriptionsConfig()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = SubscriptionsConfig(**raw)

    # Resolve every override now so bad values fail at load time
    for entry in config.subscriptions:
        entry.to_engine_config(base)

    logger.info(
        f"Loaded {len(config.subscriptions)} subscriptions "
        f"({len(config.get_enabled())} enabled) from {path}"
    )
    return config
