"""Tests for annotations: volatility, reversal traps, targets, patterns and confidence."""

from datetime import datetime, timezone

import pytest

from conftest import falling_candles, flat_candles, rising_candles
from signal_core.confidence import (
    compose_confidence,
    detect_candle_pattern,
    determine_risk_level,
    in_trading_window,
    pattern_bonus,
    recommended_action,
    volume_strength,
)
from signal_core.guards import detect_reversal_trap, detect_volatility
from signal_core.models.candle import Candle
from signal_core.models.config import DEFAULT_TRADING_WINDOWS, TradingWindow
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
from signal_core.targets import derive_targets


def candle(open_: float, high: float, low: float, close: float, volume: float = 10.0, time: float = 0) -> Candle:
    return Candle(time=time, open=open_, high=high, low=low, close=close, volume=volume)


def trend(adx: float, tier: StrengthTier) -> TrendStrength:
    return TrendStrength(adx=adx, trending=adx >= 25, strength=tier, plus_di=30.0, minus_di=10.0)


class TestVolatilityGuard:
    """Tests for detect_volatility."""

    def test_short_series_is_calm(self):
        assert detect_volatility(rising_candles(19)) == VolatilityMetrics.calm()

    def test_quiet_market(self):
        metrics = detect_volatility(rising_candles(30))

        assert not metrics.is_high_volatility
        assert not metrics.anomaly_detected
        assert metrics.volume_spike == pytest.approx(0.0)

    def test_wick_heavy(self):
        candles = rising_candles(30)
        candles[-1] = candle(100.0, 105.0, 95.0, 101.0, time=candles[-1].time)

        metrics = detect_volatility(candles)

        assert metrics.wick_to_body_ratio == pytest.approx(9.0)
        assert metrics.is_high_volatility
        assert metrics.anomaly_type == "wick_heavy"
        assert metrics.volatility_score == 100.0

    def test_volume_spike(self):
        candles = rising_candles(30)
        candles[-1].volume = 100.0

        metrics = detect_volatility(candles)

        # avg20 = (19 * 10 + 100) / 20 = 14.5
        assert metrics.volume_spike == pytest.approx((100.0 / 14.5 - 1) * 100)
        assert metrics.is_high_volatility
        assert metrics.anomaly_type == "volume_spike"

    def test_zero_body(self):
        metrics = detect_volatility(flat_candles(25))
        assert metrics.wick_to_body_ratio == 0.0
        assert not metrics.is_high_volatility


class TestReversalTrap:
    """Tests for detect_reversal_trap."""

    def test_short_series(self):
        assert detect_reversal_trap(rising_candles(9)) == 0

    def test_clean_trend(self):
        assert detect_reversal_trap(rising_candles(30)) == 0

    def test_wick_extreme(self):
        candles = flat_candles(12)
        candles[-1] = candle(100.0, 100.2, 97.0, 100.1, time=candles[-1].time)

        assert detect_reversal_trap(candles) == 20

    def test_volume_range_divergence(self):
        candles = rising_candles(12)
        last = candles[-1]
        candles[-1] = candle(last.open, last.open * 1.00005, last.open * 0.99995, last.open * 1.00004,
                             volume=100.0, time=last.time)

        score = detect_reversal_trap(candles)

        assert score >= 30

    def test_capped(self):
        candles = falling_candles(30)
        assert 0 <= detect_reversal_trap(candles) <= 100


class TestTargets:
    """Tests for derive_targets."""

    def test_up_targets_ordered_above_price(self):
        candles = rising_candles(40)

        targets = derive_targets(candles, Direction.UP)

        price = candles[-1].close
        assert price < targets.scalp.price < targets.mid.price < targets.big.price
        assert targets.scalp.source == "15M/5M"
        assert targets.mid.source == "1H/30M"
        assert targets.big.source == "1D/4H/1H"

    def test_down_targets_ordered_below_price(self):
        candles = falling_candles(40)

        targets = derive_targets(candles, Direction.DOWN)

        price = candles[-1].close
        assert price > targets.scalp.price > targets.mid.price > targets.big.price

    def test_atr_multiples(self):
        candles = flat_candles(30, price=1000.0)
        for c in candles:
            c.high, c.low = 1005.0, 995.0

        targets = derive_targets(candles, Direction.UP)

        assert targets.scalp.price == pytest.approx(1008.0)
        assert targets.mid.price == pytest.approx(1018.0)
        assert targets.big.price == pytest.approx(1030.0)

    def test_small_atr_keeps_precision(self):
        """Rounding to cents is skipped when it would collapse the tiers."""
        candles = flat_candles(30, price=0.5)
        for c in candles:
            c.high, c.low = 0.5001, 0.4999

        targets = derive_targets(candles, Direction.UP)

        assert 0.5 < targets.scalp.price < targets.mid.price < targets.big.price

    def test_sideways_is_neutral(self):
        candles = rising_candles(30)

        targets = derive_targets(candles, Direction.SIDEWAYS)

        assert targets.scalp.price == targets.mid.price == targets.big.price == candles[-1].close
        assert targets.big.source == "Neutral"

    def test_empty(self):
        assert derive_targets([], Direction.UP).big.price == 0.0


class TestCandlePattern:
    """Tests for detect_candle_pattern."""

    def test_bullish_engulfing(self):
        prev = candle(101.0, 101.5, 99.5, 100.0)
        cur = candle(99.8, 102.5, 99.5, 102.0)

        pattern = detect_candle_pattern(cur, prev)

        assert pattern == CandlePattern(type=PatternType.ENGULFING, bullish=True, confidence=85)

    def test_bearish_engulfing(self):
        prev = candle(100.0, 101.5, 99.5, 101.0)
        cur = candle(101.2, 101.5, 98.5, 99.0)

        pattern = detect_candle_pattern(cur, prev)

        assert pattern.type == PatternType.ENGULFING
        assert not pattern.bullish

    def test_pin_bar(self):
        prev = candle(100.0, 100.5, 99.5, 100.2)
        cur = candle(100.0, 101.05, 97.0, 101.0)

        pattern = detect_candle_pattern(cur, prev)

        assert pattern.type == PatternType.PIN_BAR
        assert pattern.bullish
        assert pattern.confidence == 75

    def test_doji(self):
        prev = candle(100.0, 100.5, 99.5, 100.2)
        cur = candle(100.0, 101.0, 99.0, 100.05)

        assert detect_candle_pattern(cur, prev).type == PatternType.DOJI

    def test_marubozu(self):
        prev = candle(100.0, 100.5, 99.5, 100.2)
        cur = candle(100.0, 102.05, 99.95, 102.0)

        pattern = detect_candle_pattern(cur, prev)

        assert pattern.type == PatternType.MARUBOZU
        assert pattern.confidence == 80

    def test_neutral(self):
        prev = candle(100.0, 100.5, 99.5, 100.2)
        cur = candle(100.0, 101.5, 99.5, 101.0)

        pattern = detect_candle_pattern(cur, prev)

        assert pattern.type == PatternType.NEUTRAL
        assert pattern.confidence == 50

    @pytest.mark.parametrize("confidence,bonus", [(85, 15.0), (75, 10.0), (50, 5.0), (30, 0.0)])
    def test_pattern_bonus(self, confidence, bonus):
        assert pattern_bonus(CandlePattern(type=PatternType.NEUTRAL, bullish=True, confidence=confidence)) == bonus


class TestConfidence:
    """Tests for compose_confidence and the risk annotations."""

    def test_formula(self):
        pattern = CandlePattern(type=PatternType.NEUTRAL, bullish=True, confidence=50)

        # clip(50 + 10 + 80 * 0.25 + 5) = 85, * 1.0 (30m), + 5 (volume 120%)
        result = compose_confidence(trend(30.0, StrengthTier.MODERATE), 80.0, pattern, "30m", 120.0)

        assert result == pytest.approx(90.0)

    def test_clipped_before_and_after_multiplier(self):
        pattern = CandlePattern(type=PatternType.ENGULFING, bullish=True, confidence=85)

        result = compose_confidence(trend(80.0, StrengthTier.VERY_STRONG), 100.0, pattern, "1w", 200.0)

        assert result == 100.0

    def test_timeframe_multiplier(self):
        pattern = CandlePattern(type=PatternType.DOJI, bullish=False, confidence=30)

        result = compose_confidence(trend(26.0, StrengthTier.MODERATE), 0.0, pattern, "1m")

        assert result == pytest.approx(60.0 * 0.8)

    def test_volume_strength(self):
        candles = rising_candles(20)
        assert volume_strength(candles) == pytest.approx(100.0)
        candles[-1].volume = 20.0
        assert volume_strength(candles) == pytest.approx(200.0)
        assert volume_strength(flat_candles(5, volume=0.0)) == 100.0

    def test_risk_levels(self):
        calm = VolatilityMetrics.calm()
        unsafe = VolatilityMetrics(
            is_high_volatility=True, volatility_score=90.0, wick_to_body_ratio=3.0,
            volume_spike=0.0, anomaly_detected=True, anomaly_type="wick_heavy",
        )
        choppy = VolatilityMetrics(
            is_high_volatility=False, volatility_score=65.0, wick_to_body_ratio=2.0,
            volume_spike=50.0, anomaly_detected=False,
        )

        assert determine_risk_level(unsafe, 95.0) == RiskLevel.HIGH
        assert determine_risk_level(choppy, 95.0) == RiskLevel.MEDIUM
        assert determine_risk_level(calm, 30.0) == RiskLevel.MEDIUM
        assert determine_risk_level(calm, 80.0) == RiskLevel.LOW

    def test_recommended_action(self):
        assert recommended_action(Direction.UP, True, RiskLevel.LOW) == RecommendedAction.ENTER
        assert recommended_action(Direction.DOWN, True, RiskLevel.MEDIUM) == RecommendedAction.ENTER
        assert recommended_action(Direction.UP, True, RiskLevel.HIGH) == RecommendedAction.AVOID
        assert recommended_action(Direction.SIDEWAYS, False, RiskLevel.MEDIUM) == RecommendedAction.WAIT
        assert recommended_action(Direction.UP, False, RiskLevel.MEDIUM) == RecommendedAction.WAIT
        assert recommended_action(Direction.SIDEWAYS, False, RiskLevel.HIGH) == RecommendedAction.AVOID


class TestTradingWindow:
    """Tests for the local-time trading windows."""

    @pytest.mark.parametrize(
        "hour,minute,expected",
        [
            (3, 0, True),  # 08:30 IST, window start
            (6, 0, True),  # 11:30 IST, window end
            (6, 1, False),  # 11:31 IST
            (9, 0, True),  # 14:30 IST
            (12, 0, False),  # 17:30 IST
            (18, 15, True),  # 23:45 IST
            (18, 16, False),  # 23:46 IST
        ],
    )
    def test_default_windows(self, hour, minute, expected):
        now = datetime(2024, 1, 15, hour, minute, tzinfo=timezone.utc)
        assert in_trading_window(now, DEFAULT_TRADING_WINDOWS) is expected

    def test_naive_is_utc(self):
        assert in_trading_window(datetime(2024, 1, 15, 4, 0), DEFAULT_TRADING_WINDOWS)

    def test_wrapping_window(self):
        window = TradingWindow.from_hhmm("22:00", "02:00")
        now = datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc)
        assert in_trading_window(now, [window], utc_offset_minutes=0)
        assert not in_trading_window(now.replace(hour=12), [window], utc_offset_minutes=0)
