"""Trend-strength filter (ADX/DI) and the price-action trend read.

The ADX gate is the first hard filter of the engine: only trending
regimes (ADX >= threshold, 25 by default) may produce a directional signal.
"""

import logging
from typing import Sequence

from signal_core.indicators import ema, ema_series
from signal_core.models.candle import Candle
from signal_core.models.signal import Direction, StrengthTier, TrendStrength

logger = logging.getLogger(__name__)

DEFAULT_ADX_THRESHOLD = 25.0


def strength_tier(adx_value: float) -> StrengthTier:
    """Map an ADX value to its strength tier."""
    if adx_value >= 50:
        return StrengthTier.VERY_STRONG
    if adx_value >= 35:
        return StrengthTier.STRONG
    if adx_value >= 25:
        return StrengthTier.MODERATE
    return StrengthTier.WEAK


def effective_adx_period(candle_count: int, period: int) -> int:
    """Shrink the ADX period to fit short series.

    A full reading needs ``2 * period + 1`` candles (one smoothing pass for
    DM and one for DX). Shorter series use ``(n - 1) // 2``, never below 2.
    """
    if candle_count >= 2 * period + 1:
        return period
    return max(2, (candle_count - 1) // 2)


def calculate_adx(
    candles: Sequence[Candle],
    period: int = 14,
    threshold: float = DEFAULT_ADX_THRESHOLD,
) -> TrendStrength:
    """
    Calculate the Average Directional Index.

    +DM/-DM come from consecutive high/low deltas and are smoothed with
    EMA(period); DX = |+DM - -DM| / (+DM + -DM) * 100 on the smoothed values
    (indices where both are 0 carry no direction and are skipped);
    ADX = EMA(DX, period). +DI/-DI are the smoothed DM as a percentage of
    the smoothed true range.

    Args:
        candles: Candles to measure (usually Heiken-Ashi smoothed)
        period: Smoothing period
        threshold: Minimum ADX for ``trending``

    Returns:
        TrendStrength; fewer than 3 candles reads as ADX 0 (not trending)
    """
    n = len(candles)
    if n < 3:
        return TrendStrength.flat(period)

    period = effective_adx_period(n, period)

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    tr: list[float] = []

    for i in range(1, n):
        cur, prev = candles[i], candles[i - 1]
        high_diff = cur.high - prev.high
        low_diff = prev.low - cur.low

        plus_dm.append(high_diff if high_diff > low_diff and high_diff > 0 else 0.0)
        minus_dm.append(low_diff if low_diff > high_diff and low_diff > 0 else 0.0)
        tr.append(max(cur.high - cur.low, abs(cur.high - prev.close), abs(cur.low - prev.close)))

    smooth_plus = ema_series(plus_dm, period)
    smooth_minus = ema_series(minus_dm, period)
    smooth_tr = ema_series(tr, period)

    dx = []
    for p, m in zip(smooth_plus, smooth_minus):
        total = p + m
        if total > 0:
            dx.append(abs(p - m) / total * 100.0)

    adx_value = min(100.0, max(0.0, ema(dx, period))) if dx else 0.0

    plus_di = minus_di = 0.0
    if smooth_tr and smooth_tr[-1] > 0:
        plus_di = 100.0 * smooth_plus[-1] / smooth_tr[-1]
        minus_di = 100.0 * smooth_minus[-1] / smooth_tr[-1]

    return TrendStrength(
        adx=adx_value,
        trending=adx_value >= threshold,
        strength=strength_tier(adx_value),
        plus_di=plus_di,
        minus_di=minus_di,
        period=period,
    )


def trend_direction(candles: Sequence[Candle], lookback: int = 10) -> Direction:
    """Price-action read over the last ``lookback`` candles.

    Counts rising and falling closes between consecutive candles; a side
    wins only with a strict majority of the comparisons.
    """
    recent = candles[-lookback:]
    comparisons = len(recent) - 1
    if comparisons < 1:
        return Direction.SIDEWAYS

    ups = sum(1 for i in range(1, len(recent)) if recent[i].close > recent[i - 1].close)
    downs = sum(1 for i in range(1, len(recent)) if recent[i].close < recent[i - 1].close)

    if ups * 2 > comparisons:
        return Direction.UP
    if downs * 2 > comparisons:
        return Direction.DOWN
    return Direction.SIDEWAYS
