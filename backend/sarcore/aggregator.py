"""Multi-timeframe SAR aggregation and asset lifecycle.

This module is pure business logic. Candle access and the readiness
input are injected, so it runs the same against the live candle source,
a test double, or recorded data.

Asset lifecycle:
    monitoring -> ready      percentage hits the ready threshold exactly
                             (with confluence, unless disabled)
    ready -> trading         selected for the single trade slot
    trading -> cooldown      trade settled, win or loss
    cooldown -> monitoring   cooldown interval elapsed
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Protocol

from sarcore.errors import ControlError, TradeSlotBusyError
from sarcore.indicators import SARCalculator
from sarcore.models import (
    TIMEFRAMES,
    AssetSpec,
    AssetStatus,
    Candle,
    MonitoredAsset,
    Readiness,
    ReadinessInput,
    SarDirection,
)

logger = logging.getLogger(__name__)

# Type aliases for injected I/O
FetchCandlesCallback = Callable[[str, str, int], Awaitable[list[Candle] | None]]
Clock = Callable[[], float]

DEFAULT_READY_PERCENTAGE = 92.0


class ReadinessProvider(Protocol):
    """Source of the externally computed readiness per asset."""

    def get(self, asset: str) -> ReadinessInput | None:
        ...


@dataclass(slots=True)
class AssetSignals:
    """SAR directions of one asset for one tick."""

    sar1m: SarDirection | None = None
    sar5m: SarDirection | None = None
    sar15m: SarDirection | None = None


class SignalAggregator:
    """
    Track monitored assets and merge per-tick SAR results into their state.

    A tick is two steps: ``collect()`` gathers SAR directions for every
    asset (I/O, may suspend), ``apply()`` merges them synchronously. The
    caller can drop collected results without touching state.

    Only one asset may be in ``trading`` at a time.
    """

    def __init__(
        self,
        fetch_candles: FetchCandlesCallback,
        readiness: ReadinessProvider,
        calculator: SARCalculator | None = None,
        window: int = 50,
        ready_percentage: float = DEFAULT_READY_PERCENTAGE,
        require_confluence: bool = True,
        cooldown_seconds: float = 60.0,
        clock: Clock = time.monotonic,
    ):
        self._fetch_candles = fetch_candles
        self._readiness = readiness
        self.calculator = calculator or SARCalculator()
        self.window = window
        self.ready_percentage = ready_percentage
        self.require_confluence = require_confluence
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock

        # Insertion order is universe order (used for tie-breaks)
        self._assets: dict[str, MonitoredAsset] = {}
        self._cooldown_until: dict[str, float] = {}
        self._trading_asset: str | None = None
        # Left the universe while trading; removed once settled
        self._retiring: set[str] = set()

    # ------------------------------------------------------------------
    # Universe
    # ------------------------------------------------------------------

    def set_universe(self, specs: Iterable[AssetSpec]) -> None:
        """Add new assets and drop departed ones, keeping existing state."""
        specs = list(specs)
        wanted = {s.name for s in specs}

        for name in list(self._assets):
            if name in wanted:
                self._retiring.discard(name)
                continue
            if name == self._trading_asset:
                self._retiring.add(name)
                continue
            self._remove(name)

        for spec in specs:
            if spec.name not in self._assets:
                self._assets[spec.name] = spec.to_monitored()
                logger.debug(f"Monitoring {spec.name} ({spec.category.value})")

    def _remove(self, name: str) -> None:
        self._assets.pop(name, None)
        self._cooldown_until.pop(name, None)
        self._retiring.discard(name)
        logger.debug(f"Stopped monitoring {name}")

    @property
    def assets(self) -> list[MonitoredAsset]:
        """Live asset objects in universe order."""
        return list(self._assets.values())

    def get(self, name: str) -> MonitoredAsset | None:
        return self._assets.get(name)

    def snapshot_assets(self) -> list[MonitoredAsset]:
        """Detached copies of every asset, safe to publish."""
        return [asset.model_copy() for asset in self._assets.values()]

    # ------------------------------------------------------------------
    # Signal collection
    # ------------------------------------------------------------------

    async def _direction(self, asset: str, timeframe: str) -> SarDirection | None:
        """SAR direction for one asset/timeframe; failures become None."""
        try:
            candles = await self._fetch_candles(asset, timeframe, self.window)
        except Exception as e:
            logger.warning(f"Candle fetch failed for {asset}/{timeframe}: {e}")
            return None

        try:
            return self.calculator.direction(candles)
        except Exception as e:
            logger.warning(f"SAR calculation failed for {asset}/{timeframe}: {e}")
            return None

    async def evaluate_asset(self, asset: str) -> AssetSignals:
        """Compute 1m/5m/15m SAR directions for one asset concurrently."""
        sar1m, sar5m, sar15m = await asyncio.gather(
            *(self._direction(asset, tf) for tf in TIMEFRAMES)
        )
        return AssetSignals(sar1m=sar1m, sar5m=sar5m, sar15m=sar15m)

    async def collect(self) -> dict[str, AssetSignals]:
        """Evaluate every monitored asset concurrently."""
        names = list(self._assets)
        results = await asyncio.gather(*(self.evaluate_asset(n) for n in names))
        return dict(zip(names, results))

    # ------------------------------------------------------------------
    # State merge
    # ------------------------------------------------------------------

    def apply(self, signals: dict[str, AssetSignals]) -> None:
        """Merge collected signals and readiness input into asset state."""
        now = self._clock()

        for name, asset in self._assets.items():
            tick = signals.get(name) or AssetSignals()
            asset.sar1m = tick.sar1m
            asset.sar5m = tick.sar5m
            asset.sar15m = tick.sar15m

            readiness = self._readiness.get(name)
            if readiness is None:
                asset.percentage = 0
                asset.price_drop_percentage = None
            else:
                asset.percentage = readiness.percentage
                asset.price_drop_percentage = readiness.price_drop_percentage

            self._advance(asset, now)

    async def refresh(self) -> None:
        """Collect and apply in one call."""
        self.apply(await self.collect())

    def _advance(self, asset: MonitoredAsset, now: float) -> None:
        """Step the lifecycle for one asset."""
        if asset.status == AssetStatus.TRADING:
            return

        if asset.status == AssetStatus.COOLDOWN:
            if now < self._cooldown_until.get(asset.name, 0.0):
                return
            self._cooldown_until.pop(asset.name, None)
            logger.info(f"{asset.name} cooldown finished")

        new_status = AssetStatus.READY if self.meets_ready(asset) else AssetStatus.MONITORING
        if new_status != asset.status:
            logger.info(f"{asset.name}: {asset.status.value} -> {new_status.value}")
        asset.status = new_status

    def meets_ready(self, asset: MonitoredAsset) -> bool:
        """Ready only at the exact threshold, never above it."""
        if asset.percentage != self.ready_percentage:
            return False
        return asset.confluence or not self.require_confluence

    def classify(self, asset: MonitoredAsset) -> Readiness:
        """Display classification: ready, high, or plain monitoring."""
        if asset.status == AssetStatus.READY and asset.percentage == self.ready_percentage:
            return Readiness.READY
        if asset.percentage >= self.ready_percentage:
            return Readiness.HIGH
        return Readiness.MONITORING

    # ------------------------------------------------------------------
    # Trade slot
    # ------------------------------------------------------------------

    @property
    def trading_asset(self) -> str | None:
        """Name of the asset holding the trade slot, if any."""
        return self._trading_asset

    def ready_assets(self) -> list[MonitoredAsset]:
        return [a for a in self._assets.values() if a.status == AssetStatus.READY]

    def select_candidate(self) -> MonitoredAsset | None:
        """
        Pick the ready asset with the deepest price drop.

        The most negative price_drop_percentage wins; a missing value
        counts as 0. Ties keep universe order.
        """
        ready = self.ready_assets()
        if not ready:
            return None
        return min(
            ready,
            key=lambda a: a.price_drop_percentage if a.price_drop_percentage is not None else 0.0,
        )

    def begin_trade(self, name: str) -> MonitoredAsset:
        """
        Move a ready asset into the trade slot.

        Raises:
            TradeSlotBusyError: Another asset is already trading
            ControlError: Asset unknown or not ready
        """
        if self._trading_asset is not None:
            raise TradeSlotBusyError(self._trading_asset)

        asset = self._assets.get(name)
        if asset is None:
            raise ControlError(f"Unknown asset: {name}")
        if asset.status != AssetStatus.READY:
            raise ControlError(f"{name} is not ready ({asset.status.value})")

        asset.status = AssetStatus.TRADING
        self._trading_asset = name
        logger.info(f"{name}: ready -> trading")
        return asset

    def cancel_trade(self, name: str) -> None:
        """Release the slot for a trade that never opened."""
        if self._trading_asset != name:
            return
        self._trading_asset = None
        asset = self._assets.get(name)
        if asset is not None:
            asset.status = AssetStatus.MONITORING
        if name in self._retiring:
            self._remove(name)

    def complete_trade(self, name: str) -> None:
        """Settle the slot holder and start its cooldown."""
        if self._trading_asset != name:
            logger.warning(f"Settlement for {name} ignored, slot held by {self._trading_asset}")
            return

        self._trading_asset = None
        if name in self._retiring:
            self._remove(name)
            return

        asset = self._assets[name]
        asset.status = AssetStatus.COOLDOWN
        self._cooldown_until[name] = self._clock() + self.cooldown_seconds
        logger.info(f"{name}: trading -> cooldown ({self.cooldown_seconds}s)")
