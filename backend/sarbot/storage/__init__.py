"""Storage layer for trade persistence."""

from sarbot.storage.database import (
    Database,
    TradeTable,
    close_database,
    get_database,
    init_database,
)
from sarbot.storage.memory_trade_repo import InMemoryTradeStore
from sarbot.storage.trade_repo import TradeRepository

__all__ = [
    "Database",
    "TradeTable",
    "close_database",
    "get_database",
    "init_database",
    "InMemoryTradeStore",
    "TradeRepository",
]
