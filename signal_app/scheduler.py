"""Fixed-tick evaluation scheduler.

Every tick re-evaluates each subscription from the trailing candle window
of its asset. Assets are evaluated in parallel on a thread pool; the
subscriptions of one asset run sequentially on the same worker. If a tick
is still running when the next one is due, the new tick is skipped, never
queued.

Usage:
    scheduler = TickScheduler(engine, feed, tick_interval=1.0)
    scheduler.subscribe("BTC", "5m")
    scheduler.on_signal(my_callback)

    await scheduler.run()
"""

import asyncio
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Awaitable, Callable

from signal_app.feed import CandleFeed
from signal_core.engine import Evaluation, SignalEngine
from signal_core.models.config import EngineConfig
from signal_core.timeframes import normalize_timeframe

logger = logging.getLogger(__name__)

# Type alias for signal callbacks
SignalCallback = Callable[[Evaluation], Awaitable[None]]


class TickScheduler:
    """Drives the engine on a fixed interval and fans results out to callbacks."""

    def __init__(
        self,
        engine: SignalEngine,
        feed: CandleFeed,
        tick_interval: float = 1.0,
        max_workers: int = 4,
        base_config: EngineConfig | None = None,
    ):
        """
        Args:
            engine: Shared signal engine (owns the persistence store)
            feed: Candle feed the windows are read from
            tick_interval: Seconds between ticks
            max_workers: Size of the evaluation thread pool
            base_config: Defaults that subscription overrides apply to
        """
        self.engine = engine
        self.feed = feed
        self.tick_interval = tick_interval
        self.base_config = base_config or EngineConfig()

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="signal-eval")
        self._subscriptions: dict[tuple[str, str], EngineConfig] = {}
        self._callbacks: list[SignalCallback] = []

        self._busy = False
        self._running = False
        self._current: asyncio.Task | None = None

        self.tick_count = 0
        self.skipped_ticks = 0

    # ------------------------------------------------------------------
    # Subscriptions and callbacks
    # ------------------------------------------------------------------

    def subscribe(self, asset: str, timeframe: str, **overrides) -> EngineConfig:
        """Evaluate ``asset`` on ``timeframe`` every tick.

        Re-subscribing the same (asset, timeframe) replaces its overrides.

        Raises:
            InvalidTimeframeError: If the timeframe cannot be parsed
            ValueError: If an override is invalid
        """
        timeframe = normalize_timeframe(timeframe)
        config = self.base_config.with_overrides(**{**overrides, "timeframe": timeframe})
        self._subscriptions[(asset, timeframe)] = config
        logger.info(f"Subscribed {asset} {timeframe}")
        return config

    def unsubscribe(self, asset: str, timeframe: str) -> bool:
        """Stop evaluating (asset, timeframe) and forget its signal history."""
        timeframe = normalize_timeframe(timeframe)
        removed = self._subscriptions.pop((asset, timeframe), None) is not None
        if removed:
            self.engine.history.reset(asset, timeframe)
            logger.info(f"Unsubscribed {asset} {timeframe}")
        return removed

    @property
    def subscriptions(self) -> list[tuple[str, str]]:
        return list(self._subscriptions)

    def on_signal(self, callback: SignalCallback) -> None:
        """Register a callback for every evaluation.

        Args:
            callback: Async function called with each Evaluation
        """
        self._callbacks.append(callback)

    def off_signal(self, callback: SignalCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _evaluate_asset(
        self,
        asset: str,
        configs: list[EngineConfig],
        now: datetime,
    ) -> list[Evaluation]:
        """Evaluate every subscription of one asset (runs on a worker thread)."""
        candles = self.feed.get_candles(asset)
        evaluations = []
        for config in configs:
            try:
                evaluations.append(self.engine.evaluate(asset, candles, config, now=now))
            except Exception as e:
                logger.error(f"Evaluation failed for {asset} {config.timeframe}: {e}", exc_info=True)
        return evaluations

    async def _dispatch(self, evaluation: Evaluation) -> None:
        for callback in self._callbacks:
            try:
                await callback(evaluation)
            except Exception as e:
                logger.warning(
                    f"Signal callback error for {evaluation.signal.asset} "
                    f"{evaluation.signal.timeframe}: {e}"
                )

    def _skip(self) -> None:
        self.skipped_ticks += 1
        logger.warning(f"Previous tick still running, skipping (skipped {self.skipped_ticks} so far)")

    async def tick(self, now: datetime | None = None) -> list[Evaluation] | None:
        """Run one evaluation pass over all subscriptions.

        Returns:
            The evaluations of this tick, or None if the tick was skipped
            because the previous one is still running
        """
        if self._busy:
            self._skip()
            return None

        self._busy = True
        try:
            now = now or datetime.now(timezone.utc)

            by_asset: dict[str, list[EngineConfig]] = defaultdict(list)
            for (asset, _), config in self._subscriptions.items():
                by_asset[asset].append(config)

            loop = asyncio.get_running_loop()
            futures = [
                loop.run_in_executor(self._executor, self._evaluate_asset, asset, configs, now)
                for asset, configs in by_asset.items()
            ]
            results = await asyncio.gather(*futures, return_exceptions=True)

            evaluations: list[Evaluation] = []
            for asset, result in zip(by_asset, results):
                if isinstance(result, BaseException):
                    logger.error(f"Worker failed for {asset}: {result}")
                    continue
                evaluations.extend(result)

            for evaluation in evaluations:
                await self._dispatch(evaluation)

            self.tick_count += 1
            return evaluations
        finally:
            self._busy = False

    async def run(self) -> None:
        """Tick every ``tick_interval`` seconds until stop() is called."""
        self._running = True
        logger.info(
            f"Tick scheduler started: interval={self.tick_interval}s, "
            f"{len(self._subscriptions)} subscriptions"
        )
        try:
            while self._running:
                if self._current is None or self._current.done():
                    self._current = asyncio.create_task(self.tick())
                else:
                    self._skip()
                await asyncio.sleep(self.tick_interval)
        finally:
            if self._current is not None and not self._current.done():
                await asyncio.gather(self._current, return_exceptions=True)
            logger.info(f"Tick scheduler stopped after {self.tick_count} ticks ({self.skipped_ticks} skipped)")

    def stop(self) -> None:
        self._running = False

    def close(self) -> None:
        """Stop ticking and shut the worker pool down."""
        self.stop()
        self._executor.shutdown(wait=True)
