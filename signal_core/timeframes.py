"""Timeframe parsing and the standard timeframe ladder.

Timeframe strings are ``<int><unit>`` where unit is one of ``m`` (minutes),
``h`` (hours), ``d``/``D`` (days) or ``w`` (weeks). Anything else is
rejected with ``InvalidTimeframeError`` instead of being defaulted.
"""

import re

# Seconds per timeframe unit
_UNIT_SECONDS = {
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "D": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}

_TIMEFRAME_RE = re.compile(r"^([1-9][0-9]*)([mhdDw])$")

# Standard timeframes, shortest first. Used to pick the lower timeframes
# that take part in multi-timeframe consensus.
TIMEFRAME_LADDER = ["1m", "3m", "5m", "15m", "30m", "1h", "4h", "1d", "1w"]

# Longer timeframes are more reliable; applied to the composed confidence.
TIMEFRAME_MULTIPLIERS = {
    "1m": 0.8,
    "5m": 0.9,
    "15m": 0.95,
    "30m": 1.0,
    "1h": 1.05,
    "4h": 1.1,
    "1d": 1.15,
    "1w": 1.2,
}


class InvalidTimeframeError(ValueError):
    """Raised when a timeframe string cannot be parsed."""


def parse_timeframe(timeframe: str) -> int:
    """Parse a timeframe string into its duration in seconds.

    Args:
        timeframe: Timeframe string, e.g. "5m", "4h", "1D"

    Returns:
        Duration in seconds

    Raises:
        InvalidTimeframeError: If the string is not a valid timeframe
    """
    if not isinstance(timeframe, str):
        raise InvalidTimeframeError(f"Timeframe must be a string, got {type(timeframe).__name__}")

    match = _TIMEFRAME_RE.match(timeframe.strip())
    if match is None:
        raise InvalidTimeframeError(
            f"Invalid timeframe '{timeframe}': expected <int><unit> with unit in m/h/d/w"
        )
    value, unit = match.groups()
    return int(value) * _UNIT_SECONDS[unit]


def normalize_timeframe(timeframe: str) -> str:
    """Validate a timeframe and return it in canonical form ("1D" -> "1d")."""
    parse_timeframe(timeframe)
    timeframe = timeframe.strip()
    if timeframe.endswith("D"):
        return timeframe[:-1] + "d"
    return timeframe


def lower_timeframes(timeframe: str, limit: int = 3) -> list[str]:
    """Get up to ``limit`` standard timeframes shorter than ``timeframe``.

    The nearest shorter timeframes come first, e.g. "15m" -> ["5m", "3m", "1m"].
    """
    seconds = parse_timeframe(timeframe)
    shorter = [tf for tf in TIMEFRAME_LADDER if parse_timeframe(tf) < seconds]
    shorter.reverse()
    return shorter[:limit]


def timeframe_multiplier(timeframe: str) -> float:
    """Confidence multiplier for a timeframe (1.0 for non-standard ones)."""
    return TIMEFRAME_MULTIPLIERS.get(normalize_timeframe(timeframe), 1.0)
