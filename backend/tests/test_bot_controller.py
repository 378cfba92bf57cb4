"""Tests for the bot controller: run loop, epochs, and trade lifecycle."""

import asyncio

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from sarbot.clients import AuthSession
from sarbot.config import Settings
from sarbot.services import BotController, ReadinessFeed
from sarbot.storage import InMemoryTradeStore
from sarcore.errors import ControlError, TradeSlotBusyError
from sarcore.models import (
    AssetCategory,
    AssetSpec,
    AssetStatus,
    Candle,
    ReadinessInput,
    TradeDirection,
    TradeResult,
)


def trending(up: bool, n: int = 20) -> list[Candle]:
    step = 1.0 if up else -1.0
    candles = []
    for i in range(n):
        close = 100.0 + step * i
        open_ = close - step
        candles.append(
            Candle(
                open_time=i * 60_000,
                open=open_,
                high=max(open_, close) + 0.5,
                low=min(open_, close) - 0.5,
                close=close,
            )
        )
    return candles


class FakeSource:
    """Stands in for CandleSource with controllable direction and price."""

    def __init__(self, up: bool = True, price: float | None = 100.0):
        self.up = up
        self.price = price
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def get_candles(self, asset, timeframe, limit):
        if self.gate is not None:
            await self.gate.wait()
        return trending(self.up)

    async def get_current_price(self, asset):
        return self.price

    async def close(self):
        self.closed = True


async def wait_for(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


class Harness:
    """Controller wired to fakes, recording every published event."""

    def __init__(self, up: bool = True, auto_trade: bool = True, store=None):
        self.settings = Settings(
            tick_interval_seconds=3600,
            trade_duration_seconds=60,
            trade_amount=5.0,
            cooldown_seconds=60,
            candle_window=20,
            auto_trade=auto_trade,
        )
        self.feed = ReadinessFeed()
        self.store = store or InMemoryTradeStore()
        self.sources: list[FakeSource] = []
        self.up = up
        self.settle_gate = asyncio.Event()
        self.states = []
        self.started = []
        self.completed = []

        async def sleep(_seconds):
            await self.settle_gate.wait()

        self.controller = BotController(
            settings=self.settings,
            universe=[
                AssetSpec(name="EURUSD_otc", category=AssetCategory.FOREX),
                AssetSpec(name="GBPUSD_otc", category=AssetCategory.FOREX),
            ],
            readiness=self.feed,
            store=self.store,
            session=AuthSession(uid=1, is_demo=True, session="s"),
            source_factory=self._new_source,
            sleep=sleep,
        )
        self.controller.events.subscribe(self._on_state, self._on_started, self._on_completed)

    def _new_source(self) -> FakeSource:
        source = FakeSource(up=self.up)
        self.sources.append(source)
        return source

    async def _on_state(self, snapshot):
        self.states.append(snapshot)

    async def _on_started(self, trade):
        self.started.append(trade)

    async def _on_completed(self, trade):
        self.completed.append(trade)

    @property
    def source(self) -> FakeSource:
        return self.sources[-1]

    async def start_and_tick(self) -> None:
        """Start and wait for the first tick to publish."""
        await self.controller.start()
        await wait_for(lambda: len(self.states) >= 2)


@pytest_asyncio.fixture
async def harness():
    h = Harness()
    yield h
    h.settle_gate.set()
    await h.controller.shutdown()


class TestControl:
    """start/stop state checks."""

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, harness):
        await harness.start_and_tick()
        published = len(harness.states)

        with pytest.raises(ControlError):
            await harness.controller.start()

        assert len(harness.states) == published
        assert harness.controller.running

    @pytest.mark.asyncio
    async def test_stop_when_stopped_rejected(self, harness):
        with pytest.raises(ControlError):
            await harness.controller.stop()
        assert harness.states == []

    @pytest.mark.asyncio
    async def test_start_and_stop_publish_state(self, harness):
        await harness.start_and_tick()
        await harness.controller.stop()

        assert harness.states[0].running is True
        assert harness.states[-1].running is False
        assert harness.states[-1].connected is True

    @pytest.mark.asyncio
    async def test_fresh_source_per_run(self, harness):
        await harness.start_and_tick()
        await harness.controller.stop()
        await wait_for(lambda: harness.sources[0].closed)

        await harness.controller.start()

        assert len(harness.sources) == 2
        assert harness.sources[0] is not harness.sources[1]
        assert harness.controller.epoch == 3


class TestTick:
    """Merge and publish."""

    @pytest.mark.asyncio
    async def test_tick_publishes_assets(self, harness):
        await harness.start_and_tick()

        snapshot = harness.states[-1]
        assert snapshot.running is True
        assert [a.name for a in snapshot.monitored_assets] == ["EURUSD_otc", "GBPUSD_otc"]
        assert all(a.confluence for a in snapshot.monitored_assets)

    @pytest.mark.asyncio
    async def test_stop_discards_in_flight_tick(self, harness):
        await harness.controller.start()
        harness.source.gate = asyncio.Event()
        await asyncio.sleep(0.01)

        await harness.controller.stop()
        published = len(harness.states)
        harness.source.gate.set()
        await wait_for(lambda: harness.source.closed)

        assert len(harness.states) == published
        assert all(a.sar1m is None for a in harness.controller.aggregator.assets)

    @pytest.mark.asyncio
    async def test_published_snapshot_is_immutable(self, harness):
        await harness.start_and_tick()
        snapshot = harness.states[-1]

        harness.controller.aggregator.assets[0].percentage = 42

        assert snapshot.monitored_assets[0].percentage == 0


class TestTrades:
    """Auto-trade open and settlement."""

    @pytest.mark.asyncio
    async def test_ready_asset_opens_call(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92, price_drop_percentage=-1.0))
        await harness.start_and_tick()

        assert len(harness.started) == 1
        trade = harness.started[0]
        assert trade.asset == "EURUSD_otc"
        assert trade.direction == TradeDirection.CALL
        assert trade.entry_price == 100.0
        assert trade.amount == 5.0
        assert trade.sar_signal_at_entry == "long"

        assert harness.controller.aggregator.get("EURUSD_otc").status == AssetStatus.TRADING
        assert harness.states[-1].current_trade.id == trade.id
        assert harness.states[-1].current_price == 100.0
        assert len(await harness.store.get_recent_trades()) == 1

    @pytest.mark.asyncio
    async def test_short_confluence_opens_put(self):
        h = Harness(up=False)
        h.feed.update("GBPUSD_otc", ReadinessInput(percentage=92))
        await h.start_and_tick()

        assert h.started[0].direction == TradeDirection.PUT
        assert h.started[0].asset == "GBPUSD_otc"
        h.settle_gate.set()
        await h.controller.shutdown()

    @pytest.mark.asyncio
    async def test_settlement_win_then_cooldown(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await harness.start_and_tick()

        harness.source.price = 101.0
        harness.settle_gate.set()
        await wait_for(lambda: harness.completed)

        settled = harness.completed[0]
        assert settled.result == TradeResult.WIN
        assert settled.exit_price == 101.0
        assert harness.controller.current_trade is None
        assert harness.controller.aggregator.trading_asset is None
        assert harness.controller.aggregator.get("EURUSD_otc").status == AssetStatus.COOLDOWN

        stats = await harness.store.get_trade_stats()
        assert (stats.wins, stats.losses) == (1, 0)

    @pytest.mark.asyncio
    async def test_missing_exit_price_is_loss(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await harness.start_and_tick()

        harness.source.price = None
        harness.settle_gate.set()
        await wait_for(lambda: harness.completed)

        assert harness.completed[0].result == TradeResult.LOSS
        assert harness.completed[0].exit_price == 100.0

    @pytest.mark.asyncio
    async def test_trade_pending_at_stop_settles_from_run_source(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await harness.start_and_tick()
        source = harness.source

        await harness.controller.stop()
        await wait_for(lambda: harness.controller._task.done())
        assert not source.closed

        source.price = 101.0
        harness.settle_gate.set()
        await wait_for(lambda: harness.completed)

        assert harness.completed[0].exit_price == 101.0
        assert harness.completed[0].result == TradeResult.WIN
        await wait_for(lambda: source.closed)

    @pytest.mark.asyncio
    async def test_slot_busy_rejects_second_trade(self, harness):
        for name in ("EURUSD_otc", "GBPUSD_otc"):
            harness.feed.update(name, ReadinessInput(percentage=92))
        await harness.start_and_tick()

        with pytest.raises(TradeSlotBusyError):
            await harness.controller.open_trade("GBPUSD_otc")
        assert len(harness.started) == 1

    @pytest.mark.asyncio
    async def test_deepest_drop_selected(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92, price_drop_percentage=-1.2))
        harness.feed.update("GBPUSD_otc", ReadinessInput(percentage=92, price_drop_percentage=-3.4))
        await harness.start_and_tick()

        assert harness.started[0].asset == "GBPUSD_otc"

    @pytest.mark.asyncio
    async def test_persist_failure_releases_slot(self):
        store = InMemoryTradeStore()
        store.create_trade = AsyncMock(side_effect=RuntimeError("db down"))
        h = Harness(store=store)
        h.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await h.start_and_tick()

        assert h.started == []
        assert h.controller.aggregator.trading_asset is None
        assert h.controller.aggregator.get("EURUSD_otc").status == AssetStatus.MONITORING
        await h.controller.shutdown()

    @pytest.mark.asyncio
    async def test_auto_trade_off(self):
        h = Harness(auto_trade=False)
        h.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await h.start_and_tick()

        assert h.started == []
        assert h.controller.aggregator.get("EURUSD_otc").status == AssetStatus.READY
        await h.controller.shutdown()


class TestStatus:
    """Status payload."""

    @pytest.mark.asyncio
    async def test_status_payload(self, harness):
        harness.feed.update("EURUSD_otc", ReadinessInput(percentage=92))
        await harness.start_and_tick()

        status = await harness.controller.get_status()

        assert status["running"] is True
        assert status["stats"]["total"] == 1
        assert len(status["trades"]) == 1
        assert status["trades"][0]["asset"] == "EURUSD_otc"
        assert status["account"] == {"uid": 1, "isDemo": True, "sessionToken": "s"}
        assert status["currentTrade"]["direction"] == "call"
        assert len(status["monitoredAssets"]) == 2
