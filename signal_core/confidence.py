"""Confidence composer, candle patterns and risk annotation."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from signal_core.indicators import sma
from signal_core.models.candle import Candle
from signal_core.models.config import TradingWindow
from signal_core.models.signal import (
    CandlePattern,
    Direction,
    PatternType,
    RecommendedAction,
    RiskLevel,
    StrengthTier,
    TrendStrength,
    VolatilityMetrics,
)
from signal_core.timeframes import timeframe_multiplier

BASE_CONFIDENCE = 50.0

ADX_BONUS = {
    StrengthTier.WEAK: 0.0,
    StrengthTier.MODERATE: 10.0,
    StrengthTier.STRONG: 20.0,
    StrengthTier.VERY_STRONG: 30.0,
}

CONSENSUS_WEIGHT = 0.25
VOLUME_LOOKBACK = 10


def detect_candle_pattern(candle: Candle, prev: Candle) -> CandlePattern:
    """Classify the last candle against the one before it.

    Checked in order: engulfing (85), pin bar (75), doji (30),
    marubozu (80); anything else is NEUTRAL (50).
    """
    body = candle.body_size
    rng = candle.range_size
    upper_wick = candle.upper_wick
    lower_wick = candle.lower_wick

    if (
        candle.is_bullish
        and prev.is_bearish
        and candle.open < prev.close
        and candle.close > prev.open
    ):
        return CandlePattern(type=PatternType.ENGULFING, bullish=True, confidence=85)

    if (
        candle.is_bearish
        and prev.is_bullish
        and candle.open > prev.open
        and candle.close < prev.close
    ):
        return CandlePattern(type=PatternType.ENGULFING, bullish=False, confidence=85)

    if body > 0 and lower_wick > body * 2 and upper_wick < body * 0.3:
        return CandlePattern(type=PatternType.PIN_BAR, bullish=True, confidence=75)

    if body > 0 and upper_wick > body * 2 and lower_wick < body * 0.3:
        return CandlePattern(type=PatternType.PIN_BAR, bullish=False, confidence=75)

    if rng > 0 and body < rng * 0.1:
        return CandlePattern(type=PatternType.DOJI, bullish=False, confidence=30)

    if rng > 0 and body > rng * 0.8:
        return CandlePattern(type=PatternType.MARUBOZU, bullish=candle.is_bullish, confidence=80)

    return CandlePattern(type=PatternType.NEUTRAL, bullish=candle.is_bullish, confidence=50)


def pattern_bonus(pattern: CandlePattern | None) -> float:
    if pattern is None:
        return 0.0
    if pattern.confidence >= 80:
        return 15.0
    if pattern.confidence >= 60:
        return 10.0
    if pattern.confidence >= 40:
        return 5.0
    return 0.0


def volume_strength(candles: Sequence[Candle], lookback: int = VOLUME_LOOKBACK) -> float:
    """Latest volume as a percentage of the mean of the previous candles.

    Returns 100 (neutral) when there is no history or no volume.
    """
    recent = candles[-lookback:]
    if len(recent) < 2:
        return 100.0
    avg_volume = sma([c.volume for c in recent[:-1]], len(recent) - 1)
    if avg_volume <= 0:
        return 100.0
    return recent[-1].volume / avg_volume * 100.0


def volume_bonus(strength: float) -> float:
    if strength > 150:
        return 10.0
    if strength > 100:
        return 5.0
    return 0.0


def _clip(value: float) -> float:
    return min(100.0, max(0.0, value))


def compose_confidence(
    trend: TrendStrength,
    consensus_percent: float,
    pattern: CandlePattern | None,
    timeframe: str,
    volume_pct: float = 100.0,
) -> float:
    """
    Compose the final confidence score.

    clip(50 + adx_bonus + consensus * 0.25 + pattern_bonus) * tf_multiplier
    + volume_bonus, clipped again to [0, 100].

    Args:
        trend: ADX reading of the signal timeframe
        consensus_percent: Winning share of the multi-timeframe vote
        pattern: Pattern of the last smoothed candle
        timeframe: Signal timeframe (selects the reliability multiplier)
        volume_pct: Output of volume_strength()

    Returns:
        Confidence in [0, 100]
    """
    score = (
        BASE_CONFIDENCE
        + ADX_BONUS[trend.strength]
        + consensus_percent * CONSENSUS_WEIGHT
        + pattern_bonus(pattern)
    )
    score = _clip(score) * timeframe_multiplier(timeframe)
    return _clip(score + volume_bonus(volume_pct))


def determine_risk_level(volatility: VolatilityMetrics, confidence: float) -> RiskLevel:
    if volatility.is_high_volatility:
        return RiskLevel.HIGH
    if volatility.volatility_score > 60 or confidence < 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommended_action(
    direction: Direction,
    confirmed: bool,
    risk_level: RiskLevel,
) -> RecommendedAction:
    """AVOID on HIGH risk, ENTER a confirmed directional signal, otherwise WAIT."""
    if risk_level == RiskLevel.HIGH:
        return RecommendedAction.AVOID
    if confirmed and direction != Direction.SIDEWAYS:
        return RecommendedAction.ENTER
    return RecommendedAction.WAIT


def in_trading_window(
    now: datetime,
    windows: Iterable[TradingWindow],
    utc_offset_minutes: int = 330,
) -> bool:
    """Check whether ``now`` falls inside any local-time trading window.

    Naive datetimes are treated as UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))
    minute_of_day = local.hour * 60 + local.minute
    return any(window.contains(minute_of_day) for window in windows)
