"""Data models."""

from signal_core.models.candle import Candle, CandleBuffer
from signal_core.models.config import (
    DEFAULT_TRADING_WINDOWS,
    EngineConfig,
    TradingWindow,
)
from signal_core.models.signal import (
    CandlePattern,
    ConfluenceResult,
    ConsensusResult,
    Direction,
    PatternType,
    RecommendedAction,
    RiskLevel,
    Signal,
    StrengthTier,
    TargetLevel,
    Targets,
    TimeframeVote,
    TrendStrength,
    VolatilityMetrics,
)

__all__ = [
    # Hot path (dataclass)
    "Candle",
    "CandleBuffer",
    "TrendStrength",
    "TimeframeVote",
    "ConsensusResult",
    "ConfluenceResult",
    "CandlePattern",
    "VolatilityMetrics",
    # Emitted records (pydantic)
    "Signal",
    "Targets",
    "TargetLevel",
    "EngineConfig",
    "TradingWindow",
    "DEFAULT_TRADING_WINDOWS",
    # Enums
    "Direction",
    "StrengthTier",
    "RiskLevel",
    "PatternType",
    "RecommendedAction",
]
