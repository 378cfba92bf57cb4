"""Bot controller: polling scheduler, trade slot owner, and control surface.

Each ``start()`` opens a new run epoch with its own CandleSource. A tick
collects SAR signals (I/O), then checks that its epoch is still current
before merging and publishing, so a tick that was in flight when the bot
stopped is silently dropped.

Trade flow (auto_trade on, slot free):
    select ready asset -> open at current price -> persist -> trade-started
    ... trade_duration_seconds ...
    settle at current price -> persist -> trade-completed -> asset cooldown
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable

from sarbot.clients import CandleServiceClient, SessionPayload, Unrecognized, account_info
from sarbot.config import Settings
from sarbot.services.candle_source import CandleSource
from sarcore.aggregator import Clock, ReadinessProvider, SignalAggregator
from sarcore.errors import ControlError, TradeSlotBusyError
from sarcore.events import BotEvents
from sarcore.models import (
    AssetSpec,
    BotSnapshot,
    Candle,
    SarDirection,
    TradeDirection,
    TradeRecord,
)
from sarcore.trade_store import TradeStore

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], CandleSource]
Sleep = Callable[[float], Awaitable[None]]


class BotController:
    """Runs the tick loop and owns the single active-trade slot."""

    def __init__(
        self,
        settings: Settings,
        universe: Iterable[AssetSpec],
        readiness: ReadinessProvider,
        store: TradeStore,
        events: BotEvents | None = None,
        session: SessionPayload | None = None,
        source_factory: SourceFactory | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.store = store
        self.events = events or BotEvents()
        self.session = session if session is not None else Unrecognized()
        self._source_factory = source_factory or self._default_source
        self._sleep = sleep

        self.aggregator = SignalAggregator(
            fetch_candles=self._fetch_candles,
            readiness=readiness,
            window=settings.candle_window,
            ready_percentage=settings.ready_percentage,
            require_confluence=settings.require_confluence_for_ready,
            cooldown_seconds=settings.cooldown_seconds,
            clock=clock,
        )
        self.aggregator.set_universe(universe)

        self.balance: float = 0.0
        self._running = False
        self._epoch = 0
        self._source: CandleSource | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._settle_task: asyncio.Task | None = None
        # Source held by the pending settlement; it outlives a stopped run
        self._settle_source: CandleSource | None = None
        self._current_trade: TradeRecord | None = None
        self._current_price: float | None = None

    def _default_source(self) -> CandleSource:
        s = self.settings
        return CandleSource(
            client=CandleServiceClient(s.candle_service_url, timeout=s.candle_request_timeout),
            cache_ttl_ms=s.candle_cache_ttl_ms,
            fallback_enabled=s.synthetic_fallback,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def connected(self) -> bool:
        """True when a broker session payload was recognized."""
        return not isinstance(self.session, Unrecognized)

    @property
    def current_trade(self) -> TradeRecord | None:
        return self._current_trade

    def _is_current(self, epoch: int | None) -> bool:
        if epoch is None:
            return True
        return self._running and epoch == self._epoch

    def set_universe(self, specs: Iterable[AssetSpec]) -> None:
        self.aggregator.set_universe(specs)

    def snapshot(self) -> BotSnapshot:
        """Materialize the complete current state."""
        trade = self._current_trade
        return BotSnapshot(
            running=self._running,
            connected=self.connected,
            balance=self.balance,
            current_price=self._current_price if trade is not None else None,
            monitored_assets=self.aggregator.snapshot_assets(),
            current_trade=trade.model_copy() if trade is not None else None,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Start the tick loop.

        Raises:
            ControlError: Already running
        """
        if self._running:
            raise ControlError("Bot is already running")

        self._epoch += 1
        self._running = True
        self._source = self._source_factory()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(self._epoch, self._source, self._stop_event)
        )
        logger.info(f"Bot started (epoch {self._epoch})")
        await self._publish(self.snapshot())

    async def stop(self) -> None:
        """
        Stop the tick loop immediately.

        A pending trade still settles. Raises ControlError if not running.
        """
        if not self._running:
            raise ControlError("Bot is not running")

        self._running = False
        self._epoch += 1
        self._source = None
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("Bot stopped")
        await self._publish(self.snapshot())

    async def shutdown(self) -> None:
        """Stop and cancel background tasks (application exit)."""
        if self._running:
            await self.stop()
        for task in (self._task, self._settle_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._settle_task = None

    async def _run(self, epoch: int, source: CandleSource, stop_event: asyncio.Event) -> None:
        """Tick loop for one run epoch."""
        interval = self.settings.tick_interval_seconds
        try:
            while self._is_current(epoch):
                try:
                    await self.tick(epoch)
                except Exception as e:
                    logger.error(f"Tick failed: {e}")

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            if source is not self._settle_source:
                await source.close()
            logger.debug(f"Run loop for epoch {epoch} exited")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def _fetch_candles(self, asset: str, timeframe: str, count: int) -> list[Candle] | None:
        source = self._source
        if source is None:
            return None
        return await source.get_candles(asset, timeframe, count)

    async def tick(self, epoch: int | None = None) -> BotSnapshot | None:
        """
        Run one collect/merge/publish cycle.

        Returns:
            The published snapshot, or None if the epoch went stale
        """
        signals = await self.aggregator.collect()
        if not self._is_current(epoch):
            logger.debug("Discarding tick results from a stopped run")
            return None

        self.aggregator.apply(signals)

        if self.settings.auto_trade and self.aggregator.trading_asset is None:
            try:
                await self.open_trade(epoch=epoch)
            except ControlError as e:
                logger.warning(f"Trade not opened: {e}")

        if self._current_trade is not None and self._source is not None:
            self._current_price = await self._source.get_current_price(self._current_trade.asset)

        if not self._is_current(epoch):
            return None

        snapshot = self.snapshot()
        await self._publish(snapshot)
        return snapshot

    async def _publish(self, snapshot: BotSnapshot) -> None:
        await self.events.state.emit(snapshot)

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    async def open_trade(self, asset: str | None = None, epoch: int | None = None) -> TradeRecord | None:
        """
        Open a trade on a ready asset.

        Args:
            asset: Asset to trade; the best ready candidate if omitted
            epoch: Run epoch the request belongs to

        Returns:
            The opened trade, or None if nothing was tradable

        Raises:
            TradeSlotBusyError: A trade is already active
            ControlError: Named asset unknown or not ready
        """
        if self.aggregator.trading_asset is not None:
            raise TradeSlotBusyError(self.aggregator.trading_asset)

        if asset is None:
            candidate = self.aggregator.select_candidate()
            if candidate is None:
                return None
        else:
            candidate = self.aggregator.get(asset)
            if candidate is None:
                raise ControlError(f"Unknown asset: {asset}")

        signal = candidate.consensus or candidate.sar1m
        if signal is None:
            logger.debug(f"{candidate.name} ready without a SAR direction, skipping")
            return None

        source = self._source
        if source is None:
            raise ControlError("Bot is not running")

        entry_price = await source.get_current_price(candidate.name)
        if entry_price is None:
            logger.warning(f"No entry price for {candidate.name}, trade skipped")
            return None
        if not self._is_current(epoch):
            return None

        self.aggregator.begin_trade(candidate.name)

        trade = TradeRecord(
            direction=TradeDirection.CALL if signal == SarDirection.LONG else TradeDirection.PUT,
            amount=self.settings.trade_amount,
            asset=candidate.name,
            duration_seconds=self.settings.trade_duration_seconds,
            entry_price=entry_price,
            sar_signal_at_entry=signal.value,
        )

        try:
            await self.store.create_trade(trade)
        except Exception as e:
            logger.error(f"Failed to persist trade on {trade.asset}: {e}")
            self.aggregator.cancel_trade(trade.asset)
            return None

        self._current_trade = trade
        self._current_price = entry_price
        logger.info(
            f"Trade opened: {trade.direction.value.upper()} {trade.asset} "
            f"@ {entry_price:.5f} for {trade.duration_seconds}s"
        )
        await self.events.trade_started.emit(trade.model_copy())

        self._settle_source = source
        self._settle_task = asyncio.create_task(self._settle_after(trade, source))
        return trade

    async def _settle_after(self, trade: TradeRecord, source: CandleSource) -> None:
        try:
            await self._sleep(trade.duration_seconds)
            await self.settle_trade(trade, source)
        finally:
            self._settle_source = None
            if source is not self._source:
                await source.close()

    async def settle_trade(self, trade: TradeRecord, source: CandleSource | None = None) -> None:
        """Resolve a pending trade at the current price and free the slot."""
        source = source or self._source
        exit_price = None
        if source is not None:
            exit_price = await source.get_current_price(trade.asset)
        if exit_price is None:
            logger.warning(f"No exit price for {trade.asset}, settling at entry")
            exit_price = trade.entry_price

        if not trade.settle(exit_price):
            return

        try:
            await self.store.settle_trade(trade)
        except Exception as e:
            logger.error(f"Failed to persist settlement of {trade.id}: {e}")

        if self._current_trade is trade:
            self._current_trade = None
            self._current_price = None
        self.aggregator.complete_trade(trade.asset)

        logger.info(
            f"Trade settled: {trade.asset} {trade.result.value.upper()} "
            f"({trade.entry_price:.5f} -> {exit_price:.5f})"
        )
        await self.events.trade_completed.emit(trade.model_copy())

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> dict[str, Any]:
        """Snapshot plus trade stats, recent trades, and account info."""
        stats = await self.store.get_trade_stats()
        trades = await self.store.get_recent_trades(self.settings.recent_trades_limit)
        return {
            **self.snapshot().to_wire(),
            "stats": stats.to_wire(),
            "trades": [t.to_wire() for t in trades],
            "account": account_info(self.session),
        }
