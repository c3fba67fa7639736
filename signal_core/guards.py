"""Volatility guard and reversal-trap detector.

Both only annotate the emitted signal (risk level, warning, reversal
probability); neither blocks emission.
"""

from typing import Sequence

from signal_core.indicators import rsi, sma
from signal_core.models.candle import Candle
from signal_core.models.signal import VolatilityMetrics

VOLATILITY_WINDOW = 20
WICK_HEAVY_RATIO = 2.5
VOLUME_SPIKE_PCT = 200.0
UNSAFE_SCORE = 75.0

REVERSAL_WINDOW = 10
RSI_DIVERGENCE_POINTS = 30
VOLUME_DIVERGENCE_POINTS = 30
WICK_EXTREME_POINTS = 20

UNSAFE_WARNING = "WAIT... unsafe zone - high volatility"


def detect_volatility(candles: Sequence[Candle]) -> VolatilityMetrics:
    """Volatility guard for the latest candle.

    Flags the candle as unsafe if its wick-to-body ratio exceeds 2.5, its
    volume is more than 200% above the 20-period average, or the composite
    score (ratio * 20 + min(100, spike / 2), capped at 100) exceeds 75.
    Fewer than 20 candles reads as calm.
    """
    if len(candles) < VOLATILITY_WINDOW:
        return VolatilityMetrics.calm()

    recent = candles[-VOLATILITY_WINDOW:]
    current = candles[-1]

    body = current.body_size
    total_wick = current.upper_wick + current.lower_wick
    wick_to_body = total_wick / body if body > 0 else 0.0
    is_wick_heavy = wick_to_body > WICK_HEAVY_RATIO

    avg_volume = sma([c.volume for c in recent], VOLATILITY_WINDOW)
    volume_spike = (current.volume / avg_volume - 1.0) * 100.0 if avg_volume > 0 else 0.0
    is_volume_spike = volume_spike > VOLUME_SPIKE_PCT

    score = min(100.0, max(0.0, wick_to_body * 20.0 + min(100.0, volume_spike / 2.0)))

    anomaly_type = None
    if is_wick_heavy:
        anomaly_type = "wick_heavy"
    elif is_volume_spike:
        anomaly_type = "volume_spike"

    return VolatilityMetrics(
        is_high_volatility=is_wick_heavy or is_volume_spike or score > UNSAFE_SCORE,
        volatility_score=score,
        wick_to_body_ratio=wick_to_body,
        volume_spike=volume_spike,
        anomaly_detected=is_wick_heavy or is_volume_spike,
        anomaly_type=anomaly_type,
    )


def detect_reversal_trap(candles: Sequence[Candle], rsi_period: int = 14) -> int:
    """Score (0-100) how likely the latest move is a false breakout.

    - RSI/price divergence (+30): new high while RSI drops
    - volume/range divergence (+30): volume over twice the recent average
      on a range under half the recent average range
    - wick extreme (+20): either wick longer than twice the body

    Fewer than 10 candles scores 0.
    """
    if len(candles) < REVERSAL_WINDOW:
        return 0

    recent = candles[-REVERSAL_WINDOW:]
    current, prev = candles[-1], candles[-2]
    closes = [c.close for c in candles]

    score = 0

    current_rsi = rsi(closes, rsi_period)
    prev_rsi = rsi(closes[:-1], rsi_period)
    if current.high > prev.high and current_rsi < prev_rsi:
        score += RSI_DIVERGENCE_POINTS

    history = recent[:-1]
    avg_volume = sma([c.volume for c in history], len(history))
    avg_range = sma([c.range_size for c in history], len(history))
    if current.volume > avg_volume * 2 and current.range_size < avg_range / 2:
        score += VOLUME_DIVERGENCE_POINTS

    body = current.body_size
    if current.upper_wick > body * 2 or current.lower_wick > body * 2:
        score += WICK_EXTREME_POINTS

    return min(100, score)
