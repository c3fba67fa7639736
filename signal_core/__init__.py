"""Core signal engine: candles, indicators, filters and the evaluation pipeline.

This package contains pure business logic with no I/O dependencies
(no network, no database, no wire formats). The only mutable state it
owns is the signal history store used for persistence/debouncing, which
is injected into the engine explicitly.
"""

from signal_core.engine import Evaluation, SignalEngine
from signal_core.models import (
    Candle,
    CandleBuffer,
    Direction,
    EngineConfig,
    RecommendedAction,
    RiskLevel,
    Signal,
)
from signal_core.persistence import SignalHistoryStore
from signal_core.timeframes import InvalidTimeframeError

__all__ = [
    "SignalEngine",
    "Evaluation",
    "SignalHistoryStore",
    "EngineConfig",
    "Candle",
    "CandleBuffer",
    "Signal",
    "Direction",
    "RiskLevel",
    "RecommendedAction",
    "InvalidTimeframeError",
]
