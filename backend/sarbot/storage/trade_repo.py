"""Trade record repository (PostgreSQL)."""

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert

from sarbot.storage.database import Database, TradeTable, get_database
from sarcore.models import TradeDirection, TradeRecord, TradeResult, TradeStats


class TradeRepository:
    """Repository for trade data operations."""

    def __init__(self, database: Database | None = None):
        self._database = database

    @property
    def db(self) -> Database:
        return self._database or get_database()

    async def create_trade(self, trade: TradeRecord) -> None:
        """Insert a new trade record (idempotent on id)."""
        async with self.db.session() as session:
            stmt = insert(TradeTable).values(
                id=trade.id,
                asset=trade.asset,
                direction=trade.direction.value,
                amount=trade.amount,
                duration_seconds=trade.duration_seconds,
                entry_price=trade.entry_price,
                exit_price=trade.exit_price,
                result=trade.result.value,
                sar_signal_at_entry=trade.sar_signal_at_entry,
                occurred_at=trade.occurred_at,
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
            await session.execute(stmt)

    async def settle_trade(self, trade: TradeRecord) -> None:
        """Write exit price and result. Only a pending row is updated."""
        async with self.db.session() as session:
            stmt = (
                update(TradeTable)
                .where(
                    TradeTable.id == trade.id,
                    TradeTable.result == TradeResult.PENDING.value,
                )
                .values(exit_price=trade.exit_price, result=trade.result.value)
            )
            await session.execute(stmt)

    async def get_recent_trades(self, limit: int = 50) -> list[TradeRecord]:
        """Get the most recent trades, newest first."""
        async with self.db.session() as session:
            stmt = select(TradeTable).order_by(TradeTable.occurred_at.desc()).limit(limit)
            result = await session.execute(stmt)
            rows = result.scalars().all()

            return [self._row_to_trade(row) for row in rows]

    async def get_trade_stats(self) -> TradeStats:
        """Win/loss counts over all trades."""
        async with self.db.session() as session:
            stmt = select(
                TradeTable.result,
                func.count().label("count"),
            ).group_by(TradeTable.result)

            result = await session.execute(stmt)
            counts = {row.result: row.count for row in result.all()}

            return TradeStats(
                wins=counts.get(TradeResult.WIN.value, 0),
                losses=counts.get(TradeResult.LOSS.value, 0),
                total=sum(counts.values()),
            )

    def _row_to_trade(self, row: TradeTable) -> TradeRecord:
        """Convert database row to TradeRecord model."""
        return TradeRecord(
            id=row.id,
            asset=row.asset,
            direction=TradeDirection(row.direction),
            amount=float(row.amount),
            duration_seconds=row.duration_seconds,
            entry_price=float(row.entry_price),
            exit_price=float(row.exit_price) if row.exit_price is not None else None,
            result=TradeResult(row.result),
            sar_signal_at_entry=row.sar_signal_at_entry,
            occurred_at=row.occurred_at,
        )
