"""In-process trade store for database-less runs and tests."""

from sarcore.models import TradeRecord, TradeResult, TradeStats


class InMemoryTradeStore:
    """Keeps trade records in insertion order."""

    def __init__(self):
        self._trades: dict[str, TradeRecord] = {}

    async def create_trade(self, trade: TradeRecord) -> None:
        self._trades.setdefault(trade.id, trade.model_copy())

    async def settle_trade(self, trade: TradeRecord) -> None:
        stored = self._trades.get(trade.id)
        if stored is None or not stored.is_pending:
            return
        self._trades[trade.id] = trade.model_copy()

    async def get_recent_trades(self, limit: int = 50) -> list[TradeRecord]:
        trades = sorted(self._trades.values(), key=lambda t: t.occurred_at, reverse=True)
        return [t.model_copy() for t in trades[:limit]]

    async def get_trade_stats(self) -> TradeStats:
        results = [t.result for t in self._trades.values()]
        return TradeStats(
            wins=results.count(TradeResult.WIN),
            losses=results.count(TradeResult.LOSS),
            total=len(results),
        )
