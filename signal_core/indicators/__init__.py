"""Technical indicators (pure math, no I/O)."""

from signal_core.indicators.indicators import (
    BollingerBands,
    IndicatorCalculator,
    IndicatorSnapshot,
    MACDResult,
    StochasticRSI,
    VolumeBin,
    VolumeProfile,
    atr,
    bollinger_bands,
    candle_atr,
    ema,
    ema_series,
    macd,
    macd_series,
    rsi,
    rsi_series,
    sma,
    stochastic_rsi,
    true_range,
    volume_profile,
)

__all__ = [
    "ema",
    "ema_series",
    "sma",
    "rsi",
    "rsi_series",
    "macd",
    "macd_series",
    "bollinger_bands",
    "stochastic_rsi",
    "true_range",
    "atr",
    "candle_atr",
    "volume_profile",
    "IndicatorCalculator",
    "IndicatorSnapshot",
    "MACDResult",
    "BollingerBands",
    "StochasticRSI",
    "VolumeBin",
    "VolumeProfile",
]
