"""Signal, trend and consensus data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Signal direction."""

    UP = "UP"
    DOWN = "DOWN"
    SIDEWAYS = "SIDEWAYS"


class StrengthTier(str, Enum):
    """ADX trend strength tier."""

    WEAK = "WEAK"  # < 25, excluded from signalling
    MODERATE = "MODERATE"  # [25, 35)
    STRONG = "STRONG"  # [35, 50)
    VERY_STRONG = "VERY_STRONG"  # >= 50


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PatternType(str, Enum):
    """Candle pattern on the last smoothed candle."""

    ENGULFING = "ENGULFING"
    PIN_BAR = "PIN_BAR"
    DOJI = "DOJI"
    MARUBOZU = "MARUBOZU"
    NEUTRAL = "NEUTRAL"


class RecommendedAction(str, Enum):
    ENTER = "ENTER"
    WAIT = "WAIT"
    AVOID = "AVOID"


# =============================================================================
# Ephemeral per-evaluation records (dataclasses, never persisted)
# =============================================================================

@dataclass(frozen=True, slots=True)
class TrendStrength:
    """ADX trend strength reading."""

    adx: float
    trending: bool
    strength: StrengthTier
    plus_di: float
    minus_di: float
    period: int = 14

    @classmethod
    def flat(cls, period: int = 14) -> "TrendStrength":
        """Reading used when the series is too short to measure."""
        return cls(
            adx=0.0,
            trending=False,
            strength=StrengthTier.WEAK,
            plus_di=0.0,
            minus_di=0.0,
            period=period,
        )


@dataclass(frozen=True, slots=True)
class TimeframeVote:
    """Verdict of one timeframe in the multi-timeframe consensus."""

    timeframe: str
    direction: Direction
    adx: float
    trending: bool
    strength: float = 0.0  # 0-100, body size + volume confirmation
    ema_confluence: bool = False  # EMA8/EMA34 agrees with direction
    rsi_signal: Direction = Direction.SIDEWAYS
    volume_confirm: bool = False
    candles: int = 0


@dataclass(frozen=True, slots=True)
class ConsensusResult:
    """Outcome of the ADX-weighted multi-timeframe vote."""

    direction: Direction
    consensus_percent: float  # 0-100, 0 when no side reaches the threshold
    votes: tuple[TimeframeVote, ...] = ()

    @property
    def qualifying_votes(self) -> tuple[TimeframeVote, ...]:
        """Votes from trending timeframes (the ones that were counted)."""
        return tuple(v for v in self.votes if v.trending)


@dataclass(frozen=True, slots=True)
class ConfluenceResult:
    """Agreement of the single-timeframe indicator votes."""

    direction: Direction
    confluence_percent: float
    bull_votes: int
    bear_votes: int
    votes: dict[str, Direction] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CandlePattern:
    type: PatternType
    bullish: bool
    confidence: int  # fixed weight per pattern type


@dataclass(frozen=True, slots=True)
class VolatilityMetrics:
    """Volatility guard reading for the latest candle."""

    is_high_volatility: bool
    volatility_score: float  # 0-100
    wick_to_body_ratio: float
    volume_spike: float  # % above the 20-period average volume
    anomaly_detected: bool
    anomaly_type: str | None = None  # "wick_heavy" | "volume_spike"

    @classmethod
    def calm(cls) -> "VolatilityMetrics":
        return cls(
            is_high_volatility=False,
            volatility_score=0.0,
            wick_to_body_ratio=0.0,
            volume_spike=0.0,
            anomaly_detected=False,
        )


# =============================================================================
# Emitted records (pydantic, immutable)
# =============================================================================

class TargetLevel(BaseModel):
    """A take-profit tier."""

    model_config = ConfigDict(frozen=True)

    price: float
    source: str


class Targets(BaseModel):
    """Three ATR-based target tiers (scalp < mid < big distance)."""

    model_config = ConfigDict(frozen=True)

    big: TargetLevel
    mid: TargetLevel
    scalp: TargetLevel

    @classmethod
    def neutral(cls, price: float, source: str = "Neutral") -> "Targets":
        """All tiers at the current price (no trade direction)."""
        level = TargetLevel(price=price, source=source)
        return cls(big=level, mid=level, scalp=level)


class Signal(BaseModel):
    """Final engine output for one (asset, timeframe) evaluation."""

    model_config = ConfigDict(frozen=True)

    asset: str
    timeframe: str
    direction: Direction
    confidence: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    warning: str | None = None
    targets: Targets
    adx_value: float = 0.0
    confirmation_count: int = 0
    pattern: PatternType | None = None
    signal_confirmed: bool = False
    consensus_percent: float = 0.0
    confluence_percent: float = 0.0
    reversal_probability: float = 0.0
    volatility_score: float = 0.0
    safe_window: bool = False
    recommended_action: RecommendedAction = RecommendedAction.WAIT
    source_candles: int = 0
    generated_at: datetime

    @property
    def is_directional(self) -> bool:
        return self.direction != Direction.SIDEWAYS
