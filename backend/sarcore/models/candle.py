"""Candle (OHLC) data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

Timeframe = Literal["1m", "5m", "15m"]

# Timeframes evaluated per asset, fastest first
TIMEFRAMES: tuple[Timeframe, ...] = ("1m", "5m", "15m")

TIMEFRAME_MS: dict[str, int] = {
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
}


class Candle(BaseModel):
    """OHLC candle. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    open_time: int  # Unix epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class TrendDirection(str, Enum):
    """Drift direction of a synthetic price path."""

    UP = "up"
    DOWN = "down"

    @property
    def sign(self) -> int:
        return 1 if self is TrendDirection.UP else -1

    def opposite(self) -> "TrendDirection":
        return TrendDirection.DOWN if self is TrendDirection.UP else TrendDirection.UP


@dataclass(slots=True)
class AssetTrend:
    """Persistent drift state for one asset's synthetic candles.

    Mutated after every synthetic batch so the next batch continues
    from where the previous one ended.
    """

    base_price: float
    trend: TrendDirection
    volatility: float
