"""Candle aggregator for rolling 1-minute candles into higher timeframes.

Bucket alignment uses period boundaries (``floor(time / duration) *
duration``), so aggregation is correct regardless of where the input
window starts:

- open:   first candle's open in the bucket
- high:   highest high
- low:    lowest low
- close:  last candle's close
- volume: sum of volumes

Missing minutes simply produce buckets built from fewer candles. The last
bucket may still be in progress; it is marked ``is_closed=False`` when its
period has not ended at the last input timestamp or its last candle is
itself still open.
"""

import logging
from typing import Sequence

from signal_core.models.candle import Candle
from signal_core.timeframes import parse_timeframe

logger = logging.getLogger(__name__)

BASE_CANDLE_SECONDS = 60


def bucket_start(timestamp: float, period_seconds: int) -> float:
    """Get the period start timestamp for alignment."""
    return float((int(timestamp) // period_seconds) * period_seconds)


def aggregate_candles(
    candles: Sequence[Candle],
    timeframe: str,
    base_seconds: int = BASE_CANDLE_SECONDS,
) -> list[Candle]:
    """Aggregate base-resolution candles into ``timeframe`` buckets.

    Args:
        candles: Time-ascending base candles (typically 1m)
        timeframe: Target timeframe, e.g. "5m"
        base_seconds: Duration of one input candle

    Returns:
        Time-ascending aggregated candles

    Raises:
        InvalidTimeframeError: If ``timeframe`` cannot be parsed
    """
    period_seconds = parse_timeframe(timeframe)
    if period_seconds <= base_seconds:
        return [
            Candle(c.time, c.open, c.high, c.low, c.close, c.volume, c.is_closed)
            for c in candles
        ]

    aggregated: list[Candle] = []
    current: Candle | None = None

    for candle in candles:
        start = bucket_start(candle.time, period_seconds)

        if current is not None and start < current.time:
            # Look-ahead guard: input must be time-ascending
            logger.debug(f"Skipping out-of-order candle at {candle.time} for {timeframe}")
            continue

        if current is None or current.time != start:
            if current is not None:
                aggregated.append(current)
            current = Candle(
                time=start,
                open=candle.open,
                high=candle.high,
                low=candle.low,
                close=candle.close,
                volume=candle.volume,
                is_closed=candle.is_closed,
            )
        else:
            current.high = max(current.high, candle.high)
            current.low = min(current.low, candle.low)
            current.close = candle.close
            current.volume += candle.volume
            current.is_closed = candle.is_closed

    if current is not None:
        last_end = candles[-1].time + base_seconds
        if last_end < current.time + period_seconds:
            current.is_closed = False
        aggregated.append(current)

    return aggregated
