"""Signal engine: the gated evaluation pipeline.

aggregate -> indicators -> Heiken-Ashi -> ADX gate -> confluence gate
-> multi-timeframe consensus gate -> persistence -> annotations -> Signal

Every evaluation with enough data feeds one read into the persistence
store: the consensus direction when all three gates pass, SIDEWAYS
otherwise. A gate failure therefore breaks any running streak.

This module is pure business logic with no I/O dependencies. The only
state it touches is the injected SignalHistoryStore, so one engine can be
shared by every asset and timeframe of a process (and by worker threads).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from signal_core.aggregator import aggregate_candles
from signal_core.confidence import (
    compose_confidence,
    detect_candle_pattern,
    determine_risk_level,
    in_trading_window,
    recommended_action,
    volume_strength,
)
from signal_core.confluence import confluence_votes
from signal_core.consensus import build_votes, compute_consensus, weighted_shares
from signal_core.guards import UNSAFE_WARNING, detect_reversal_trap, detect_volatility
from signal_core.indicators import IndicatorCalculator, IndicatorSnapshot
from signal_core.models.candle import Candle
from signal_core.models.config import EngineConfig
from signal_core.models.signal import (
    ConsensusResult,
    Direction,
    RiskLevel,
    Signal,
    Targets,
)
from signal_core.persistence import SignalHistoryStore
from signal_core.smoothing import heiken_ashi
from signal_core.targets import derive_targets
from signal_core.trend import calculate_adx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Result of one evaluation: the signal plus the indicator snapshot."""

    signal: Signal
    snapshot: IndicatorSnapshot
    consensus: ConsensusResult | None = None


class SignalEngine:
    """Evaluates one (asset, timeframe) from a trailing window of 1m candles.

    Args:
        history: Persistence store (a private one is created if omitted)
        calculator: Indicator calculator for the snapshot
    """

    def __init__(
        self,
        history: SignalHistoryStore | None = None,
        calculator: IndicatorCalculator | None = None,
    ):
        self.history = history if history is not None else SignalHistoryStore()
        self.calculator = calculator if calculator is not None else IndicatorCalculator()

    def evaluate(
        self,
        asset: str,
        candles: Sequence[Candle],
        config: EngineConfig | None = None,
        now: datetime | None = None,
    ) -> Evaluation:
        """
        Run the full pipeline for one asset.

        Never raises for short or degenerate data: every early exit returns a
        SIDEWAYS signal with confidence 0 and a warning.

        Args:
            asset: Asset symbol
            candles: Time-ascending base-resolution (1m) candles
            config: Engine parameters (defaults to EngineConfig())
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            Evaluation with the emitted Signal and the IndicatorSnapshot
        """
        config = config or EngineConfig()
        now = now or datetime.now(timezone.utc)
        timeframe = config.timeframe

        window = list(candles[-config.lookback:])
        aggregated = aggregate_candles(window, timeframe)
        snapshot = self.calculator.calculate(aggregated)
        price = window[-1].close if window else 0.0
        safe_window = in_trading_window(now, config.trading_windows, config.utc_offset_minutes)

        def hold(
            warning: str,
            risk: RiskLevel,
            consensus: ConsensusResult | None = None,
            **fields,
        ) -> Evaluation:
            logger.debug(f"{asset} {timeframe}: {warning}")
            signal = Signal(
                asset=asset,
                timeframe=timeframe,
                direction=Direction.SIDEWAYS,
                confidence=0.0,
                risk_level=risk,
                warning=warning,
                targets=Targets.neutral(price),
                safe_window=safe_window,
                recommended_action=recommended_action(Direction.SIDEWAYS, False, risk),
                generated_at=now,
                **fields,
            )
            return Evaluation(signal=signal, snapshot=snapshot, consensus=consensus)

        if len(window) < config.min_candles:
            return hold(
                f"WAIT... Insufficient candle data ({len(window)} candles)",
                RiskLevel.HIGH,
                source_candles=len(window),
            )

        if len(aggregated) < config.min_buckets:
            return hold(
                f"WAIT... Insufficient aggregated candles ({len(aggregated)} {timeframe} candles)",
                RiskLevel.HIGH,
                source_candles=len(aggregated),
            )

        smoothed = heiken_ashi(aggregated)
        trend = calculate_adx(smoothed, config.adx_period, config.adx_threshold)
        confluence = confluence_votes(snapshot)

        votes = []
        consensus = None
        if trend.trending and confluence.confluence_percent >= config.confluence_threshold:
            votes = build_votes(
                window,
                timeframe,
                adx_period=config.adx_period,
                adx_threshold=config.adx_threshold,
                max_lower=config.max_lower_timeframes,
                primary=(smoothed, trend),
            )
            consensus = compute_consensus(votes, config.consensus_threshold)

        read = consensus.direction if consensus is not None else Direction.SIDEWAYS
        entry = self.history.record(asset, timeframe, read)

        # Gate 1: trend strength
        if not trend.trending:
            return hold(
                f"Market not trending - ADX: {trend.adx:.1f} (need ≥{config.adx_threshold:g})",
                RiskLevel.HIGH,
                adx_value=trend.adx,
                source_candles=len(aggregated),
            )

        # Gate 2: single-timeframe confluence
        if consensus is None or confluence.confluence_percent < config.confluence_threshold:
            return hold(
                f"Insufficient confluence ({confluence.confluence_percent:.0f}% "
                f"need {config.confluence_threshold:g}%)",
                RiskLevel.MEDIUM,
                adx_value=trend.adx,
                confluence_percent=confluence.confluence_percent,
                source_candles=len(aggregated),
            )

        # Gate 3: multi-timeframe consensus
        if consensus.direction == Direction.SIDEWAYS:
            leading = max(weighted_shares(votes))
            return hold(
                f"Insufficient MTF consensus ({leading:.0f}% need {config.consensus_threshold:g}%)",
                RiskLevel.MEDIUM,
                adx_value=trend.adx,
                confluence_percent=confluence.confluence_percent,
                source_candles=len(aggregated),
                consensus=consensus,
            )

        # Gate 4: persistence
        if entry.confirmation_count < config.persistence_threshold:
            return hold(
                f"Signal pending confirmation "
                f"({entry.confirmation_count}/{config.persistence_threshold} candles)",
                RiskLevel.MEDIUM,
                adx_value=trend.adx,
                confirmation_count=entry.confirmation_count,
                consensus_percent=consensus.consensus_percent,
                confluence_percent=confluence.confluence_percent,
                source_candles=len(aggregated),
                consensus=consensus,
            )

        direction = consensus.direction

        # Annotations (never block emission)
        volatility = detect_volatility(smoothed)
        reversal_probability = detect_reversal_trap(smoothed)
        pattern = detect_candle_pattern(smoothed[-1], smoothed[-2])
        targets = derive_targets(
            aggregated,
            direction,
            atr_period=config.atr_period,
            window=config.target_window,
            multipliers=(config.scalp_atr_mult, config.mid_atr_mult, config.big_atr_mult),
        )

        confidence = compose_confidence(
            trend,
            consensus.consensus_percent,
            pattern,
            timeframe,
            volume_strength(aggregated),
        )
        risk_level = determine_risk_level(volatility, confidence)

        signal = Signal(
            asset=asset,
            timeframe=timeframe,
            direction=direction,
            confidence=confidence,
            risk_level=risk_level,
            warning=UNSAFE_WARNING if volatility.is_high_volatility else None,
            targets=targets,
            adx_value=trend.adx,
            confirmation_count=entry.confirmation_count,
            pattern=pattern.type,
            signal_confirmed=True,
            consensus_percent=consensus.consensus_percent,
            confluence_percent=confluence.confluence_percent,
            reversal_probability=float(reversal_probability),
            volatility_score=volatility.volatility_score,
            safe_window=safe_window,
            recommended_action=recommended_action(direction, True, risk_level),
            source_candles=len(aggregated),
            generated_at=now,
        )

        logger.debug(
            f"{asset} {timeframe}: {direction.value} confidence={confidence:.1f} "
            f"ADX={trend.adx:.1f} consensus={consensus.consensus_percent:.0f}% "
            f"risk={risk_level.value} confirmations={entry.confirmation_count}"
        )

        return Evaluation(signal=signal, snapshot=snapshot, consensus=consensus)
