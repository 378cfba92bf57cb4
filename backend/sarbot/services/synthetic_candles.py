"""Synthetic candle generator used when the candle service is unavailable.

Each asset keeps a drift state (``AssetTrend``) that survives between
batches: the next batch opens at the previous batch's last close.

Every batch contains exactly one trend reversal at its midpoint:

    candles[:L//2]   move in a randomly chosen direction
    candles[L//2:]   move in the opposite direction

so the SAR on synthetic data flips at least once per window.
"""

import logging
import time
from typing import Callable

import numpy as np

from sarcore.models import TIMEFRAME_MS, AssetTrend, Candle, TrendDirection

logger = logging.getLogger(__name__)

# Initial drift state ranges
BASE_PRICE_RANGE = (100.0, 1100.0)
VOLATILITY_RANGE = (0.5, 2.5)

VOLATILITY_MULTIPLIER = 1.5
# Per-candle move is volatility * multiplier * U(STEP_RANGE), in percent
STEP_RANGE = (0.2, 1.0)
# Wicks extend open/close by up to 0.3%
WICK_MAX = 0.003
VOLUME_RANGE = (1000.0, 6000.0)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyntheticCandleGenerator:
    """Generates candle windows with a guaranteed mid-window reversal."""

    def __init__(
        self,
        rng: np.random.Generator | None = None,
        now_ms: Callable[[], int] = _now_ms,
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._now_ms = now_ms
        self.trends: dict[str, AssetTrend] = {}

    def trend_for(self, asset: str) -> AssetTrend:
        """Get the drift state for an asset, creating it on first use."""
        trend = self.trends.get(asset)
        if trend is None:
            trend = AssetTrend(
                base_price=float(self.rng.uniform(*BASE_PRICE_RANGE)),
                trend=TrendDirection.UP if self.rng.random() < 0.5 else TrendDirection.DOWN,
                volatility=float(self.rng.uniform(*VOLATILITY_RANGE)),
            )
            self.trends[asset] = trend
            logger.debug(
                f"New synthetic trend for {asset}: base={trend.base_price:.2f}, "
                f"{trend.trend.value}, vol={trend.volatility:.2f}"
            )
        return trend

    def generate(self, asset: str, timeframe: str, limit: int) -> list[Candle]:
        """
        Generate ``limit`` candles ending at the current time.

        Args:
            asset: Asset name (drift state key)
            timeframe: "1m", "5m" or "15m" (sets candle spacing)
            limit: Number of candles

        Returns:
            Candles in ascending open time order (empty if limit <= 0)
        """
        if limit <= 0:
            return []

        state = self.trend_for(asset)
        rng = self.rng
        interval_ms = TIMEFRAME_MS.get(timeframe, TIMEFRAME_MS["1m"])

        first = TrendDirection.UP if rng.random() < 0.5 else TrendDirection.DOWN
        second = first.opposite()
        midpoint = limit // 2

        # Signed percent change per candle; sign never flips within a half
        signs = np.where(np.arange(limit) < midpoint, first.sign, second.sign)
        magnitude = state.volatility * VOLATILITY_MULTIPLIER * rng.uniform(*STEP_RANGE, size=limit)
        change_pct = signs * magnitude

        closes = state.base_price * np.cumprod(1 + change_pct / 100)
        opens = np.concatenate(([state.base_price], closes[:-1]))
        highs = np.maximum(opens, closes) * (1 + rng.uniform(0, WICK_MAX, size=limit))
        lows = np.minimum(opens, closes) * (1 - rng.uniform(0, WICK_MAX, size=limit))
        volumes = rng.uniform(*VOLUME_RANGE, size=limit)

        now = self._now_ms()
        candles = [
            Candle(
                open_time=now - (limit - 1 - i) * interval_ms,
                open=float(opens[i]),
                high=float(highs[i]),
                low=float(lows[i]),
                close=float(closes[i]),
                volume=float(volumes[i]),
            )
            for i in range(limit)
        ]

        # Next batch continues from here
        state.base_price = candles[-1].close
        state.trend = second

        return candles
