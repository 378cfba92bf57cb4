"""Trade records and aggregate statistics."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import Field

from sarcore.models.base import CamelModel


class TradeDirection(str, Enum):
    """Binary option side."""

    CALL = "call"  # Price expected to rise
    PUT = "put"    # Price expected to fall


class TradeResult(str, Enum):
    """Trade settlement status."""

    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradeRecord(CamelModel):
    """A single trade, settled exactly once."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    direction: TradeDirection
    amount: float
    asset: str
    duration_seconds: int
    entry_price: float
    exit_price: float | None = None
    result: TradeResult = TradeResult.PENDING
    sar_signal_at_entry: str | None = None
    occurred_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_pending(self) -> bool:
        return self.result == TradeResult.PENDING

    def settle(self, exit_price: float) -> bool:
        """
        Record the exit price and resolve the result.

        A call wins only if price rose, a put only if it fell; an
        unchanged price is a loss. Returns False if already settled.
        """
        if not self.is_pending:
            return False

        if self.direction == TradeDirection.CALL:
            won = exit_price > self.entry_price
        else:
            won = exit_price < self.entry_price

        self.exit_price = exit_price
        self.result = TradeResult.WIN if won else TradeResult.LOSS
        return True


class TradeStats(CamelModel):
    """Win/loss aggregate over settled trades."""

    wins: int = 0
    losses: int = 0
    total: int = 0

    @property
    def win_rate(self) -> float:
        """Win rate in percent over settled trades."""
        settled = self.wins + self.losses
        if settled == 0:
            return 0.0
        return self.wins / settled * 100

    def to_wire(self) -> dict:
        data = super().to_wire()
        data["winRate"] = round(self.win_rate, 2)
        return data
