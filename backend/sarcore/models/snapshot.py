"""Published bot state."""

from datetime import datetime, timezone

from pydantic import ConfigDict, Field

from sarcore.models.asset import MonitoredAsset
from sarcore.models.base import CamelModel
from sarcore.models.trade import TradeRecord


class BotSnapshot(CamelModel):
    """Complete state handed to subscribers in one piece.

    Assets and trade are copies, so later ticks never alter a
    snapshot that was already published.
    """

    model_config = ConfigDict(frozen=True)

    running: bool = False
    connected: bool = False
    balance: float = 0.0
    current_price: float | None = None
    monitored_assets: list[MonitoredAsset] = Field(default_factory=list)
    current_trade: TradeRecord | None = None
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
