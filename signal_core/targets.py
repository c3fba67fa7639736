"""ATR-based target/risk deriver.

UP:   scalp = price + 0.8 ATR, mid = price + 1.8 ATR, big = price + 3 ATR
DOWN: the same distances below price
SIDEWAYS: all three tiers at the current price, tagged "Neutral"
"""

from typing import Sequence

from signal_core.indicators import candle_atr
from signal_core.models.candle import Candle
from signal_core.models.signal import Direction, TargetLevel, Targets

SCALP_SOURCE = "15M/5M"
MID_SOURCE = "1H/30M"
BIG_SOURCE = "1D/4H/1H"


def _rounded_if_ordered(price: float, levels: list[float]) -> list[float]:
    """Round to cents unless that would collapse the tier ordering."""
    rounded = [round(level, 2) for level in levels]
    distances = [abs(level - price) for level in rounded]
    if distances[0] > 0 and distances[0] < distances[1] < distances[2]:
        return rounded
    return levels


def derive_targets(
    candles: Sequence[Candle],
    direction: Direction,
    atr_period: int = 14,
    window: int = 20,
    multipliers: tuple[float, float, float] = (0.8, 1.8, 3.0),
) -> Targets:
    """
    Derive scalp/mid/big targets from the ATR of the trailing window.

    Args:
        candles: Real (unsmoothed) candles of the signal timeframe
        direction: Trade direction
        atr_period: ATR period
        window: Number of trailing candles the ATR is measured over
        multipliers: ATR multiples for (scalp, mid, big)

    Returns:
        Targets ordered scalp < mid < big by distance from price
    """
    if not candles:
        return Targets.neutral(0.0)

    price = candles[-1].close
    if direction == Direction.SIDEWAYS:
        return Targets.neutral(price)

    atr_value = candle_atr(candles[-window:], atr_period)
    if atr_value <= 0:
        return Targets.neutral(price)

    sign = 1.0 if direction == Direction.UP else -1.0
    scalp, mid, big = _rounded_if_ordered(
        price, [price + sign * m * atr_value for m in multipliers]
    )

    return Targets(
        big=TargetLevel(price=big, source=BIG_SOURCE),
        mid=TargetLevel(price=mid, source=MID_SOURCE),
        scalp=TargetLevel(price=scalp, source=SCALP_SOURCE),
    )
