"""Technical indicators for signal generation.

All functions are pure and operate on a trailing window. None of them
raise or return NaN/Infinity on short or degenerate input; each one
documents the sentinel it falls back to instead.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from signal_core.models.candle import Candle


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True, slots=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True, slots=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    percent_b: float
    bandwidth: float


@dataclass(frozen=True, slots=True)
class StochasticRSI:
    fast_k: float
    fast_d: float
    slow_k: float
    slow_d: float


@dataclass(frozen=True, slots=True)
class VolumeBin:
    price_level: float  # lower edge of the bin
    volume: float
    is_poc: bool


@dataclass(frozen=True, slots=True)
class VolumeProfile:
    bins: tuple[VolumeBin, ...]
    point_of_control: float  # price level of the max-volume bin, 0 if empty


@dataclass(frozen=True, slots=True)
class IndicatorSnapshot:
    """Indicator values for the latest candle of a window."""

    price: float
    ema8: float
    ema34: float
    rsi: float
    macd: MACDResult
    bollinger: BollingerBands
    stochastic_rsi: StochasticRSI
    atr: float
    volume_profile: VolumeProfile
    support: float  # lowest low of the last 20 candles
    resistance: float  # highest high of the last 20 candles
    volatility: float  # (resistance - support) / price * 100
    volume: float
    candles: int


# =============================================================================
# Moving averages
# =============================================================================

def sma(values: Sequence[float], period: int) -> float:
    """Simple moving average of the last ``period`` values.

    Falls back to the mean of what exists when there are fewer values,
    and 0 for an empty input.
    """
    if len(values) == 0 or period <= 0:
        return 0.0
    window = values[-period:]
    return math.fsum(window) / len(window)


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Calculate the EMA recurrence over a series.

    The first value is the SMA of the first ``period`` values; every later
    value is ``v + k * (price - v)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Sequence of values
        period: EMA period

    Returns:
        ``len(values) - period + 1`` EMA values, or an empty list when
        there are fewer than ``period`` values
    """
    if period <= 0 or len(values) < period:
        return []

    arr = np.asarray(values, dtype=np.float64)
    k = 2.0 / (period + 1)

    result = np.empty(len(arr) - period + 1, dtype=np.float64)
    result[0] = math.fsum(arr[:period]) / period

    # v + k*(p - v) is v*(1-k) + p*k rearranged so a constant input stays exact
    for i in range(period, len(arr)):
        prev = result[i - period]
        result[i - period + 1] = prev + k * (arr[i] - prev)

    return result.tolist()


def ema(values: Sequence[float], period: int) -> float:
    """Calculate the latest EMA value.

    Returns the last available value when there are fewer than ``period``
    values, and 0 for an empty input.
    """
    if len(values) == 0:
        return 0.0
    series = ema_series(values, period)
    if not series:
        return float(values[-1])
    return series[-1]


# =============================================================================
# Momentum
# =============================================================================

def rsi(values: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index over the trailing ``period`` deltas.

    Uses simple averages of gains and losses.

    Returns:
        RSI in [0, 100]; 100 when there are no losses in the window,
        50 when there are not more than ``period`` values
    """
    if period <= 0 or len(values) <= period:
        return 50.0

    window = np.asarray(values[-(period + 1):], dtype=np.float64)
    deltas = np.diff(window)

    avg_gain = float(deltas[deltas > 0].sum()) / period
    avg_loss = float(-deltas[deltas < 0].sum()) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi_series(values: Sequence[float], period: int = 14) -> list[float]:
    """RSI at every index that has more than ``period`` values of history."""
    return [rsi(values[: i + 1], period) for i in range(period, len(values))]


def macd_series(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
) -> list[float]:
    """MACD line at every index where the slow EMA is defined."""
    slow = ema_series(values, slow_period)
    if not slow:
        return []
    fast = ema_series(values, fast_period)
    offset = slow_period - fast_period
    return [fast[i + offset] - slow[i] for i in range(len(slow))]


def macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """Moving Average Convergence Divergence.

    macd = EMA(fast) - EMA(slow); signal = EMA(signal_period) of the MACD
    line; histogram = macd - signal. With too little history the signal
    equals the MACD value (histogram 0).
    """
    if len(values) == 0:
        return MACDResult(macd=0.0, signal=0.0, histogram=0.0)

    macd_value = ema(values, fast_period) - ema(values, slow_period)
    line = macd_series(values, fast_period, slow_period) or [macd_value]
    signal = ema(line, signal_period)

    return MACDResult(macd=macd_value, signal=signal, histogram=macd_value - signal)


def stochastic_rsi(
    values: Sequence[float],
    period: int = 14,
    smooth_k: int = 3,
    smooth_d: int = 3,
) -> StochasticRSI:
    """Stochastic oscillator applied to the RSI series.

    fast_k is the raw stochastic of the latest RSI within the last
    ``period`` RSI values, fast_d its SMA(smooth_d); slow_k is the
    SMA(smooth_k) of the raw stochastic and slow_d its SMA(smooth_d).
    A flat RSI window reads 50, as does input too short for ``smooth_k``
    RSI values.
    """
    neutral = StochasticRSI(fast_k=50.0, fast_d=50.0, slow_k=50.0, slow_d=50.0)

    rsi_values = rsi_series(values, period)
    if len(rsi_values) < smooth_k:
        return neutral

    raw: list[float] = []
    for i in range(len(rsi_values)):
        window = rsi_values[max(0, i - period + 1): i + 1]
        lo, hi = min(window), max(window)
        if hi == lo:
            raw.append(50.0)
        else:
            raw.append((rsi_values[i] - lo) / (hi - lo) * 100.0)

    slow_k_values = [
        sma(raw[: i + 1], smooth_k) for i in range(smooth_k - 1, len(raw))
    ]

    return StochasticRSI(
        fast_k=raw[-1],
        fast_d=sma(raw, smooth_d),
        slow_k=slow_k_values[-1],
        slow_d=sma(slow_k_values, smooth_d),
    )


# =============================================================================
# Volatility
# =============================================================================

def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    num_std: float = 2.0,
) -> BollingerBands:
    """Bollinger Bands over the last ``period`` values.

    Uses the population standard deviation. Short input returns zero bands
    with percent_b 0.5; zero-width bands give percent_b 0.5 and a zero
    middle gives bandwidth 0.
    """
    if period <= 0 or len(values) < period:
        return BollingerBands(upper=0.0, middle=0.0, lower=0.0, percent_b=0.5, bandwidth=0.0)

    window = np.asarray(values[-period:], dtype=np.float64)
    middle = float(window.mean())
    std = float(window.std())

    upper = middle + num_std * std
    lower = middle - num_std * std
    width = upper - lower
    price = float(values[-1])

    percent_b = (price - lower) / width if width > 0 else 0.5
    bandwidth = width / middle * 100.0 if middle != 0 else 0.0

    return BollingerBands(
        upper=upper,
        middle=middle,
        lower=lower,
        percent_b=percent_b,
        bandwidth=bandwidth,
    )


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """
    Calculate True Range.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))

    The first bar has no previous close, so its TR is high - low.
    """
    n = len(highs)
    if n == 0:
        return []

    result = [highs[0] - lows[0]]
    for i in range(1, n):
        hl = highs[i] - lows[i]
        hc = abs(highs[i] - closes[i - 1])
        lc = abs(lows[i] - closes[i - 1])
        result.append(max(hl, hc, lc))

    return result


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float:
    """
    Calculate the latest Average True Range.

    Uses Wilder's smoothing (RMA) seeded with the SMA of the first
    ``period`` TR values. With fewer TR values than ``period`` the plain
    mean of what exists is returned; no bars gives 0.
    """
    tr = true_range(highs, lows, closes)
    if not tr:
        return 0.0
    if len(tr) < period:
        return math.fsum(tr) / len(tr)

    value = math.fsum(tr[:period]) / period
    alpha = 1.0 / period
    for i in range(period, len(tr)):
        value = alpha * tr[i] + (1 - alpha) * value
    return value


def candle_atr(candles: Sequence[Candle], period: int = 14) -> float:
    """ATR over a candle sequence."""
    return atr(
        [c.high for c in candles],
        [c.low for c in candles],
        [c.close for c in candles],
        period,
    )


# =============================================================================
# Volume
# =============================================================================

def volume_profile(candles: Sequence[Candle], bins: int = 10) -> VolumeProfile:
    """Volume histogram over close prices.

    Bins are equal-width between the lowest low and highest high of the
    window; the point of control is the bin with the most volume. A zero
    price range collapses to a single bin; empty input gives no bins.
    """
    if len(candles) == 0 or bins <= 0:
        return VolumeProfile(bins=(), point_of_control=0.0)

    min_price = min(c.low for c in candles)
    max_price = max(c.high for c in candles)
    price_range = max_price - min_price

    if price_range <= 0:
        total = math.fsum(c.volume for c in candles)
        return VolumeProfile(
            bins=(VolumeBin(price_level=min_price, volume=total, is_poc=True),),
            point_of_control=min_price,
        )

    bin_size = price_range / bins
    volumes = np.zeros(bins, dtype=np.float64)
    for c in candles:
        index = int((c.close - min_price) / bin_size)
        volumes[min(max(index, 0), bins - 1)] += c.volume

    poc_index = int(np.argmax(volumes))
    levels = [min_price + i * bin_size for i in range(bins)]

    return VolumeProfile(
        bins=tuple(
            VolumeBin(price_level=levels[i], volume=float(volumes[i]), is_poc=i == poc_index)
            for i in range(bins)
        ),
        point_of_control=levels[poc_index],
    )


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for the indicator snapshot used by the confluence scorer."""

    def __init__(
        self,
        fast_ema_period: int = 8,
        slow_ema_period: int = 34,
        rsi_period: int = 14,
        bollinger_period: int = 20,
        atr_period: int = 14,
        profile_bins: int = 8,
        range_window: int = 20,
    ):
        self.fast_ema_period = fast_ema_period
        self.slow_ema_period = slow_ema_period
        self.rsi_period = rsi_period
        self.bollinger_period = bollinger_period
        self.atr_period = atr_period
        self.profile_bins = profile_bins
        self.range_window = range_window

    def calculate(self, candles: Sequence[Candle]) -> IndicatorSnapshot:
        """
        Calculate all indicators for the latest candle of the window.

        Args:
            candles: Trailing window of candles (oldest first)

        Returns:
            IndicatorSnapshot; an empty window yields all-sentinel values
        """
        closes = [c.close for c in candles]
        price = closes[-1] if closes else 0.0

        recent = candles[-self.range_window:]
        support = min((c.low for c in recent), default=0.0)
        resistance = max((c.high for c in recent), default=0.0)
        volatility = (resistance - support) / price * 100.0 if price > 0 else 0.0

        return IndicatorSnapshot(
            price=price,
            ema8=ema(closes, self.fast_ema_period),
            ema34=ema(closes, self.slow_ema_period),
            rsi=rsi(closes, self.rsi_period),
            macd=macd(closes),
            bollinger=bollinger_bands(closes, self.bollinger_period),
            stochastic_rsi=stochastic_rsi(closes, self.rsi_period),
            atr=candle_atr(candles, self.atr_period),
            volume_profile=volume_profile(candles, self.profile_bins),
            support=support,
            resistance=resistance,
            volatility=volatility,
            volume=candles[-1].volume if candles else 0.0,
            candles=len(candles),
        )
