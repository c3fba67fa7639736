"""Single-timeframe confluence scorer.

Five independent directional votes are taken from the indicator snapshot:

1. EMA8 vs EMA34 (trend)
2. RSI below 45 bullish / above 55 bearish (room to run)
3. MACD sign
4. Bollinger %B below 0.4 bullish / above 0.6 bearish
5. Stochastic RSI %K below 40 bullish / above 60 bearish

confluence% = max(bull, bear) / 5 * 100. A direction needs the winning
side to lead and hold at least two votes.
"""

import logging

from signal_core.indicators import IndicatorSnapshot
from signal_core.models.signal import ConfluenceResult, Direction

logger = logging.getLogger(__name__)

DEFAULT_CONFLUENCE_THRESHOLD = 40.0
MIN_WINNING_VOTES = 2


def _band_vote(value: float, bull_below: float, bear_above: float) -> Direction:
    if value < bull_below:
        return Direction.UP
    if value > bear_above:
        return Direction.DOWN
    return Direction.SIDEWAYS


def _sign_vote(value: float) -> Direction:
    if value > 0:
        return Direction.UP
    if value < 0:
        return Direction.DOWN
    return Direction.SIDEWAYS


def indicator_votes(snapshot: IndicatorSnapshot) -> dict[str, Direction]:
    """Directional vote of each indicator (SIDEWAYS = abstain)."""
    return {
        "ema": _sign_vote(snapshot.ema8 - snapshot.ema34),
        "rsi": _band_vote(snapshot.rsi, 45.0, 55.0),
        "macd": _sign_vote(snapshot.macd.macd),
        "bollinger": _band_vote(snapshot.bollinger.percent_b, 0.4, 0.6),
        "stochastic_rsi": _band_vote(snapshot.stochastic_rsi.fast_k, 40.0, 60.0),
    }


def confluence_votes(snapshot: IndicatorSnapshot) -> ConfluenceResult:
    """Tally the indicator votes without applying the emission threshold."""
    votes = indicator_votes(snapshot)
    bull = sum(1 for v in votes.values() if v == Direction.UP)
    bear = sum(1 for v in votes.values() if v == Direction.DOWN)

    if bull > bear and bull >= MIN_WINNING_VOTES:
        direction = Direction.UP
    elif bear > bull and bear >= MIN_WINNING_VOTES:
        direction = Direction.DOWN
    else:
        direction = Direction.SIDEWAYS

    return ConfluenceResult(
        direction=direction,
        confluence_percent=max(bull, bear) * 100.0 / len(votes),
        bull_votes=bull,
        bear_votes=bear,
        votes=votes,
    )


def score_confluence(
    snapshot: IndicatorSnapshot,
    threshold: float = DEFAULT_CONFLUENCE_THRESHOLD,
) -> ConfluenceResult | None:
    """Score confluence and suppress weak agreement.

    Returns:
        ConfluenceResult, or None when confluence is below ``threshold``
        (no signal may be emitted)
    """
    result = confluence_votes(snapshot)
    if result.confluence_percent < threshold:
        logger.debug(
            f"Confluence {result.confluence_percent:.0f}% below {threshold:.0f}% "
            f"(bull={result.bull_votes}, bear={result.bear_votes})"
        )
        return None
    return result
