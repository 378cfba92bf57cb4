"""Persistence contract for trade records."""

from typing import Protocol

from sarcore.models import TradeRecord, TradeStats


class TradeStore(Protocol):
    """Minimal query contract the bot needs from trade persistence."""

    async def create_trade(self, trade: TradeRecord) -> None:
        ...

    async def settle_trade(self, trade: TradeRecord) -> None:
        """Persist exit price and result of an already settled record."""
        ...

    async def get_recent_trades(self, limit: int = 50) -> list[TradeRecord]:
        """Most recent trades first."""
        ...

    async def get_trade_stats(self) -> TradeStats:
        ...
