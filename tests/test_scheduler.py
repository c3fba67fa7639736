"""Tests for the candle feed and tick scheduler."""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest

from conftest import IN_WINDOW, T0, flat_candles, rising_candles
from signal_app.feed import CandleFeed
from signal_app.scheduler import TickScheduler
from signal_core.engine import SignalEngine
from signal_core.models.candle import Candle
from signal_core.models.signal import Direction
from signal_core.timeframes import InvalidTimeframeError


class TestCandleFeed:
    """Tests for CandleFeed ingestion."""

    def test_ingest_in_order(self):
        feed = CandleFeed()
        for c in rising_candles(5):
            assert feed.ingest("BTC", c)

        assert len(feed.get_candles("BTC")) == 5
        assert feed.assets == ["BTC"]

    def test_out_of_order_dropped(self):
        feed = CandleFeed()
        candles = rising_candles(5)
        for c in candles:
            feed.ingest("BTC", c)

        assert not feed.ingest("BTC", candles[1])

        assert len(feed.get_candles("BTC")) == 5
        assert feed.dropped("BTC") == 1

    def test_same_timestamp_replaces_open_candle(self):
        feed = CandleFeed()
        feed.ingest("BTC", Candle(time=T0, open=100.0, high=100.0, low=100.0, close=100.0, is_closed=False))
        feed.ingest("BTC", Candle(time=T0, open=100.0, high=101.0, low=99.0, close=100.5, volume=3.0))

        candles = feed.get_candles("BTC")

        assert len(candles) == 1
        assert candles[0].close == 100.5
        assert candles[0].is_closed

    def test_gaps_tolerated(self):
        feed = CandleFeed()
        candles = rising_candles(10)
        for c in candles[:3] + candles[7:]:
            assert feed.ingest("BTC", c)
        assert len(feed.get_candles("BTC")) == 6

    def test_max_size(self):
        feed = CandleFeed(max_size=20)
        for c in rising_candles(50):
            feed.ingest("BTC", c)

        candles = feed.get_candles("BTC")

        assert len(candles) == 20
        assert candles[0].time == T0 + 30 * 60

    def test_unknown_asset(self):
        feed = CandleFeed()
        assert feed.get_candles("NOPE") == []
        assert feed.dropped("NOPE") == 0

    def test_snapshot_is_a_copy(self):
        feed = CandleFeed()
        for c in rising_candles(3):
            feed.ingest("BTC", c)

        snapshot = feed.get_candles("BTC")
        feed.ingest("BTC", rising_candles(4)[-1])

        assert len(snapshot) == 3


class TestTickScheduler:
    """Tests for TickScheduler."""

    @pytest.fixture
    def feed(self):
        feed = CandleFeed()
        for c in rising_candles(60):
            feed.ingest("BTC", c)
        for c in flat_candles(30):
            feed.ingest("ETH", c)
        return feed

    @pytest.fixture
    def scheduler(self, feed):
        scheduler = TickScheduler(SignalEngine(), feed, tick_interval=0.01, max_workers=2)
        yield scheduler
        scheduler.close()

    def test_subscribe_validates_timeframe(self, scheduler):
        with pytest.raises(InvalidTimeframeError):
            scheduler.subscribe("BTC", "5x")
        assert scheduler.subscriptions == []

    def test_subscribe_validates_overrides(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.subscribe("BTC", "5m", adx_threshold=250)

    def test_subscribe_normalizes(self, scheduler):
        config = scheduler.subscribe("BTC", "1D", persistence_threshold=2)

        assert config.timeframe == "1d"
        assert config.persistence_threshold == 2
        assert scheduler.subscriptions == [("BTC", "1d")]

    def test_unsubscribe_resets_history(self, scheduler):
        scheduler.subscribe("BTC", "5m")
        scheduler.engine.history.record("BTC", "5m", Direction.UP)

        assert scheduler.unsubscribe("BTC", "5m")
        assert scheduler.engine.history.get("BTC", "5m") is None
        assert not scheduler.unsubscribe("BTC", "5m")

    @pytest.mark.asyncio
    async def test_tick_evaluates_every_subscription(self, scheduler):
        scheduler.subscribe("BTC", "5m")
        scheduler.subscribe("BTC", "3m")
        scheduler.subscribe("ETH", "1m")

        evaluations = await scheduler.tick(now=IN_WINDOW)

        assert len(evaluations) == 3
        assert {(e.signal.asset, e.signal.timeframe) for e in evaluations} == {
            ("BTC", "5m"),
            ("BTC", "3m"),
            ("ETH", "1m"),
        }
        assert scheduler.tick_count == 1

    @pytest.mark.asyncio
    async def test_third_tick_confirms(self, scheduler):
        scheduler.subscribe("BTC", "5m")

        for _ in range(3):
            evaluations = await scheduler.tick(now=IN_WINDOW)

        signal = evaluations[0].signal
        assert signal.direction == Direction.UP
        assert signal.signal_confirmed

    @pytest.mark.asyncio
    async def test_callbacks_receive_evaluations(self, scheduler):
        callback = AsyncMock()
        scheduler.on_signal(callback)
        scheduler.subscribe("ETH", "1m")

        await scheduler.tick(now=IN_WINDOW)

        callback.assert_awaited_once()
        evaluation = callback.call_args[0][0]
        assert evaluation.signal.asset == "ETH"
        assert "not trending" in evaluation.signal.warning

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self, scheduler):
        bad = AsyncMock(side_effect=RuntimeError("boom"))
        good = AsyncMock()
        scheduler.on_signal(bad)
        scheduler.on_signal(good)
        scheduler.subscribe("ETH", "1m")

        evaluations = await scheduler.tick()

        assert len(evaluations) == 1
        bad.assert_awaited_once()
        good.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_off_signal(self, scheduler):
        callback = AsyncMock()
        scheduler.on_signal(callback)
        scheduler.off_signal(callback)
        scheduler.subscribe("ETH", "1m")

        await scheduler.tick()

        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_evaluation_isolated(self, scheduler, monkeypatch):
        scheduler.subscribe("BTC", "5m")
        scheduler.subscribe("ETH", "1m")
        real_evaluate = scheduler.engine.evaluate

        def evaluate(asset, candles, config=None, now=None):
            if asset == "BTC":
                raise RuntimeError("bad data")
            return real_evaluate(asset, candles, config, now)

        monkeypatch.setattr(scheduler.engine, "evaluate", evaluate)

        evaluations = await scheduler.tick()

        assert [e.signal.asset for e in evaluations] == ["ETH"]

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, scheduler):
        release = threading.Event()
        scheduler.subscribe("BTC", "5m")
        real_evaluate = scheduler.engine.evaluate

        def slow_evaluate(*args, **kwargs):
            release.wait(timeout=5)
            return real_evaluate(*args, **kwargs)

        scheduler.engine.evaluate = slow_evaluate

        first = asyncio.create_task(scheduler.tick())
        await asyncio.sleep(0.05)

        assert await scheduler.tick() is None
        assert scheduler.skipped_ticks == 1

        release.set()
        evaluations = await first
        assert len(evaluations) == 1
        assert scheduler.tick_count == 1

    @pytest.mark.asyncio
    async def test_run_and_stop(self, scheduler):
        callback = AsyncMock()
        scheduler.on_signal(callback)
        scheduler.subscribe("ETH", "1m")

        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.1)
        scheduler.stop()
        await asyncio.wait_for(task, timeout=2)

        assert scheduler.tick_count >= 1
        assert callback.await_count == scheduler.tick_count

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, scheduler):
        assert await scheduler.tick() == []
