"""Multi-timeframe consensus ("MTF-Lock").

The requested timeframe and up to ``max_lower`` shorter standard
timeframes are each aggregated independently from the same base-resolution
window, smoothed, ADX-scored and given a price-action verdict.
Non-trending timeframes are excluded; the remaining votes are weighted by
their ADX value. UP or DOWN wins only with at least ``threshold`` percent
of the qualifying weight.
"""

import logging
from typing import Sequence

from signal_core.aggregator import aggregate_candles
from signal_core.indicators import ema, rsi, sma
from signal_core.models.candle import Candle
from signal_core.models.signal import (
    ConsensusResult,
    Direction,
    TimeframeVote,
    TrendStrength,
)
from signal_core.smoothing import heiken_ashi
from signal_core.timeframes import lower_timeframes
from signal_core.trend import DEFAULT_ADX_THRESHOLD, calculate_adx, trend_direction

logger = logging.getLogger(__name__)

DEFAULT_CONSENSUS_THRESHOLD = 70.0
VERDICT_LOOKBACK = 10


def volume_confirms(candles: Sequence[Candle], lookback: int = VERDICT_LOOKBACK) -> bool:
    """Latest volume is more than 10% above the mean of the previous candles."""
    recent = candles[-lookback:]
    if len(recent) < 2:
        return False
    avg_volume = sma([c.volume for c in recent[:-1]], len(recent) - 1)
    return recent[-1].volume > avg_volume * 1.1


def score_timeframe(
    timeframe: str,
    smoothed: Sequence[Candle],
    trend: TrendStrength,
) -> TimeframeVote:
    """Build the vote of one timeframe from its smoothed candles."""
    direction = trend_direction(smoothed, VERDICT_LOOKBACK) if trend.trending else Direction.SIDEWAYS
    if not smoothed:
        return TimeframeVote(timeframe=timeframe, direction=direction, adx=trend.adx, trending=False)

    closes = [c.close for c in smoothed]
    current = smoothed[-1]

    ema_fast, ema_slow = ema(closes, 8), ema(closes, 34)
    ema_direction = (
        Direction.UP if ema_fast > ema_slow
        else Direction.DOWN if ema_fast < ema_slow
        else Direction.SIDEWAYS
    )
    rsi_value = rsi(closes)
    rsi_signal = (
        Direction.UP if rsi_value > 50
        else Direction.DOWN if rsi_value < 50
        else Direction.SIDEWAYS
    )

    confirm = volume_confirms(smoothed)
    body_pct = current.body_size / current.open * 100.0 if current.open > 0 else 0.0

    return TimeframeVote(
        timeframe=timeframe,
        direction=direction,
        adx=trend.adx,
        trending=trend.trending,
        strength=min(100.0, body_pct + (20.0 if confirm else 0.0)),
        ema_confluence=direction != Direction.SIDEWAYS and ema_direction == direction,
        rsi_signal=rsi_signal,
        volume_confirm=confirm,
        candles=len(smoothed),
    )


def build_votes(
    base_candles: Sequence[Candle],
    timeframe: str,
    adx_period: int = 14,
    adx_threshold: float = DEFAULT_ADX_THRESHOLD,
    max_lower: int = 3,
    primary: tuple[Sequence[Candle], TrendStrength] | None = None,
) -> list[TimeframeVote]:
    """Score the requested timeframe plus up to ``max_lower`` shorter ones.

    Args:
        base_candles: Base-resolution (1m) window shared by all timeframes
        timeframe: Requested timeframe (the primary vote)
        adx_period: ADX smoothing period
        adx_threshold: Minimum ADX for a timeframe to be counted
        max_lower: Number of shorter timeframes to include
        primary: Already smoothed candles and trend reading for the
            requested timeframe, to avoid recomputing them

    Returns:
        Votes, primary timeframe first
    """
    votes: list[TimeframeVote] = []

    for tf in [timeframe, *lower_timeframes(timeframe, max_lower)]:
        if tf == timeframe and primary is not None:
            smoothed, trend = primary
        else:
            smoothed = heiken_ashi(aggregate_candles(base_candles, tf))
            trend = calculate_adx(smoothed, adx_period, adx_threshold)

        vote = score_timeframe(tf, smoothed, trend)
        logger.debug(
            f"Timeframe {tf}: {vote.direction.value} ADX={vote.adx:.1f} "
            f"trending={vote.trending} candles={vote.candles}"
        )
        votes.append(vote)

    return votes


def weighted_shares(votes: Sequence[TimeframeVote]) -> tuple[float, float]:
    """ADX-weighted (up%, down%) over trending timeframes; (0, 0) if none."""
    qualifying = [v for v in votes if v.trending and v.adx > 0]
    total_weight = sum(v.adx for v in qualifying)
    if total_weight <= 0:
        return 0.0, 0.0

    up = sum(v.adx for v in qualifying if v.direction == Direction.UP)
    down = sum(v.adx for v in qualifying if v.direction == Direction.DOWN)
    return up / total_weight * 100.0, down / total_weight * 100.0


def compute_consensus(
    votes: Sequence[TimeframeVote],
    threshold: float = DEFAULT_CONSENSUS_THRESHOLD,
) -> ConsensusResult:
    """ADX-weighted vote over trending timeframes.

    Returns:
        ConsensusResult with UP/DOWN and the winning share when one side
        holds at least ``threshold`` percent of the weight, otherwise
        SIDEWAYS with consensus 0
    """
    up_share, down_share = weighted_shares(votes)

    if up_share >= threshold:
        return ConsensusResult(direction=Direction.UP, consensus_percent=up_share, votes=tuple(votes))
    if down_share >= threshold:
        return ConsensusResult(direction=Direction.DOWN, consensus_percent=down_share, votes=tuple(votes))

    return ConsensusResult(direction=Direction.SIDEWAYS, consensus_percent=0.0, votes=tuple(votes))
