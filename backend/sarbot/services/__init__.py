"""Runtime services."""

from sarbot.services.bot_controller import BotController
from sarbot.services.candle_source import CandleSource
from sarbot.services.readiness_feed import ReadinessFeed
from sarbot.services.synthetic_candles import SyntheticCandleGenerator

__all__ = [
    "BotController",
    "CandleSource",
    "ReadinessFeed",
    "SyntheticCandleGenerator",
]
