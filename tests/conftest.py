"""Shared candle fixtures."""

from datetime import datetime, timezone

import pytest

from signal_core.models.candle import Candle

# Aligned to the hour (and so to every shorter standard timeframe)
T0 = 1_700_002_800

# 04:00 UTC = 09:30 IST, inside the first default trading window
IN_WINDOW = datetime(2024, 1, 15, 4, 0, tzinfo=timezone.utc)


def rising_candles(count: int = 60, start: float = 100.0, step: float = 0.001, volume: float = 10.0) -> list[Candle]:
    """1m candles whose close rises by ``step`` (0.1%) per candle."""
    candles = []
    prev_close = start
    for i in range(count):
        close = start * (1 + step) ** (i + 1)
        candles.append(
            Candle(
                time=T0 + i * 60,
                open=prev_close,
                high=close * 1.0005,
                low=prev_close * 0.9995,
                close=close,
                volume=volume,
            )
        )
        prev_close = close
    return candles


def falling_candles(count: int = 60, start: float = 100.0, step: float = 0.001, volume: float = 10.0) -> list[Candle]:
    """1m candles whose close falls by ``step`` per candle."""
    candles = []
    prev_close = start
    for i in range(count):
        close = start * (1 - step) ** (i + 1)
        candles.append(
            Candle(
                time=T0 + i * 60,
                open=prev_close,
                high=prev_close * 1.0005,
                low=close * 0.9995,
                close=close,
                volume=volume,
            )
        )
        prev_close = close
    return candles


def flat_candles(count: int = 30, price: float = 100.0, volume: float = 10.0) -> list[Candle]:
    """1m candles with identical OHLC."""
    return [
        Candle(time=T0 + i * 60, open=price, high=price, low=price, close=price, volume=volume)
        for i in range(count)
    ]


@pytest.fixture
def rising():
    return rising_candles()


@pytest.fixture
def falling():
    return falling_candles()


@pytest.fixture
def flat():
    return flat_candles()
