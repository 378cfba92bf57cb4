"""Domain models (pure data, no I/O)."""

from sarcore.models.asset import (
    AssetCategory,
    AssetSpec,
    AssetStatus,
    MonitoredAsset,
    Readiness,
    ReadinessInput,
    confluence,
)
from sarcore.models.candle import (
    TIMEFRAME_MS,
    TIMEFRAMES,
    AssetTrend,
    Candle,
    Timeframe,
    TrendDirection,
)
from sarcore.models.signal import SARState, SarDirection
from sarcore.models.snapshot import BotSnapshot
from sarcore.models.trade import TradeDirection, TradeRecord, TradeResult, TradeStats

__all__ = [
    # Candles
    "Candle",
    "Timeframe",
    "TIMEFRAMES",
    "TIMEFRAME_MS",
    "AssetTrend",
    "TrendDirection",
    # Signals
    "SARState",
    "SarDirection",
    # Assets
    "AssetCategory",
    "AssetSpec",
    "AssetStatus",
    "MonitoredAsset",
    "Readiness",
    "ReadinessInput",
    "confluence",
    # Trades
    "TradeDirection",
    "TradeRecord",
    "TradeResult",
    "TradeStats",
    # Published state
    "BotSnapshot",
]
