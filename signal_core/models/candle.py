"""Candle (OHLCV) data models.

Candles use float prices and Unix timestamps (seconds) so that indicator
math stays on the fast path. Emitted records (signals, config) are the
pydantic models in ``signal_core.models.signal`` and ``.config``.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Candle:
    """OHLCV candle.

    ``is_closed`` is False for the most recent candle of a live series
    while base ticks for its period are still arriving.
    """

    time: float  # Unix timestamp in seconds (period start)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_closed: bool = True

    @property
    def is_bullish(self) -> bool:
        """Check if this is a bullish (green) candle."""
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        """Check if this is a bearish (red) candle."""
        return self.close < self.open

    @property
    def body_size(self) -> float:
        """Get the absolute size of the candle body."""
        return abs(self.close - self.open)

    @property
    def range_size(self) -> float:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low


@dataclass(slots=True)
class CandleBuffer:
    """Append-only buffer of recent candles for one series.

    Candles older than the last-seen timestamp are dropped. A candle with
    the same timestamp as the last one replaces it (the open candle is
    still being updated by the data source).
    """

    asset: str
    timeframe: str = "1m"
    max_size: int = 500
    candles: list[Candle] = field(default_factory=list)
    dropped: int = 0

    def add(self, candle: Candle) -> bool:
        """Add a candle, maintaining order and max size.

        Returns:
            True if the candle was appended or replaced the open candle,
            False if it was dropped as out-of-order.
        """
        if self.candles:
            last = self.candles[-1]
            if candle.time < last.time:
                self.dropped += 1
                logger.debug(
                    f"Dropping out-of-order candle for {self.asset} {self.timeframe}: "
                    f"{candle.time} < last seen {last.time}"
                )
                return False
            if candle.time == last.time:
                self.candles[-1] = candle
                return True

        self.candles.append(candle)
        if len(self.candles) > self.max_size:
            self.candles = self.candles[-self.max_size :]
        return True

    @property
    def last_time(self) -> float | None:
        return self.candles[-1].time if self.candles else None

    def snapshot(self) -> list[Candle]:
        """Get a copy of the buffered candles (safe to hand to a worker)."""
        return list(self.candles)

    def __len__(self) -> int:
        return len(self.candles)
