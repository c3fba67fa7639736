"""Engine configuration models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from signal_core.timeframes import normalize_timeframe


class TradingWindow(BaseModel):
    """A local-time window (minutes after midnight, inclusive)."""

    model_config = ConfigDict(frozen=True)

    start_minute: int = Field(ge=0, lt=24 * 60)
    end_minute: int = Field(ge=0, lt=24 * 60)

    @classmethod
    def from_hhmm(cls, start: str, end: str) -> TradingWindow:
        """Build a window from "HH:MM" strings."""
        def to_minutes(value: str) -> int:
            hours, minutes = value.split(":")
            return int(hours) * 60 + int(minutes)

        return cls(start_minute=to_minutes(start), end_minute=to_minutes(end))

    def contains(self, minute_of_day: int) -> bool:
        if self.start_minute <= self.end_minute:
            return self.start_minute <= minute_of_day <= self.end_minute
        # Window wraps past midnight
        return minute_of_day >= self.start_minute or minute_of_day <= self.end_minute


# IST (UTC+05:30) sessions with the most liquid crypto/FX overlap
DEFAULT_TRADING_WINDOWS: list[TradingWindow] = [
    TradingWindow.from_hhmm("08:30", "11:30"),
    TradingWindow.from_hhmm("14:15", "17:00"),
    TradingWindow.from_hhmm("20:30", "23:45"),
]


class EngineConfig(BaseModel):
    """Per-evaluation engine parameters.

    Every threshold can be overridden per call; the timeframe is validated
    when the config is built, so a bad timeframe fails at subscribe time
    rather than at the first tick.
    """

    model_config = ConfigDict(frozen=True)

    timeframe: str = "5m"
    lookback: int = Field(default=500, ge=1)

    # Degenerate input guards
    min_candles: int = Field(default=20, ge=1)
    min_buckets: int = Field(default=3, ge=2)

    # Trend-strength gate
    adx_period: int = Field(default=14, ge=2)
    adx_threshold: float = Field(default=25.0, ge=0, le=100)

    # Confluence gate (% of the five indicator votes)
    confluence_threshold: float = Field(default=40.0, ge=0, le=100)

    # Multi-timeframe consensus gate (% of ADX-weighted votes)
    consensus_threshold: float = Field(default=70.0, gt=0, le=100)
    max_lower_timeframes: int = Field(default=3, ge=0)

    # Persistence / debounce
    persistence_threshold: int = Field(default=3, ge=1)

    # Targets
    atr_period: int = Field(default=14, ge=1)
    target_window: int = Field(default=20, ge=2)
    scalp_atr_mult: float = Field(default=0.8, gt=0)
    mid_atr_mult: float = Field(default=1.8, gt=0)
    big_atr_mult: float = Field(default=3.0, gt=0)

    # Trading-window annotation
    utc_offset_minutes: int = 330  # IST
    trading_windows: list[TradingWindow] = Field(
        default_factory=lambda: list(DEFAULT_TRADING_WINDOWS)
    )

    @field_validator("timeframe")
    @classmethod
    def _validate_timeframe(cls, value: str) -> str:
        return normalize_timeframe(value)

    @model_validator(mode="after")
    def _check_target_order(self) -> EngineConfig:
        if not (self.scalp_atr_mult < self.mid_atr_mult < self.big_atr_mult):
            raise ValueError(
                "Target multipliers must satisfy scalp < mid < big, got "
                f"{self.scalp_atr_mult}/{self.mid_atr_mult}/{self.big_atr_mult}"
            )
        return self

    def with_overrides(self, **overrides) -> EngineConfig:
        """Return a validated copy with the given fields replaced."""
        if not overrides:
            return self
        return EngineConfig.model_validate({**self.model_dump(), **overrides})
