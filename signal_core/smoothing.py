"""Heiken-Ashi smoothing.

Applied to the aggregated series before trend filtering to reduce noise:

- haClose = (open + high + low + close) / 4
- haOpen  = (prev haOpen + prev haClose) / 2, seeded with the first open
- haHigh  = max(high, haOpen, haClose)
- haLow   = min(low, haOpen, haClose)

Time, volume and the open/closed flag pass through unchanged so smoothed
candles can be joined back to the source series.
"""

from typing import Sequence

from signal_core.models.candle import Candle


def heiken_ashi(candles: Sequence[Candle]) -> list[Candle]:
    """Transform candles into Heiken-Ashi candles.

    Args:
        candles: Source candles (oldest first)

    Returns:
        Smoothed candles, one per input candle
    """
    smoothed: list[Candle] = []
    prev_open = prev_close = 0.0

    for i, candle in enumerate(candles):
        ha_close = (candle.open + candle.high + candle.low + candle.close) / 4
        ha_open = candle.open if i == 0 else (prev_open + prev_close) / 2

        smoothed.append(
            Candle(
                time=candle.time,
                open=ha_open,
                high=max(candle.high, ha_open, ha_close),
                low=min(candle.low, ha_open, ha_close),
                close=ha_close,
                volume=candle.volume,
                is_closed=candle.is_closed,
            )
        )
        prev_open, prev_close = ha_open, ha_close

    return smoothed
