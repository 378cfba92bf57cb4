"""Tests for typed event channels and subscription handles."""

import pytest
from unittest.mock import AsyncMock

from sarcore.events import BotEvents, Channel, Subscription
from sarcore.models import BotSnapshot, TradeDirection, TradeRecord


def make_trade() -> TradeRecord:
    return TradeRecord(
        direction=TradeDirection.CALL,
        amount=1.0,
        asset="EURUSD_otc",
        duration_seconds=60,
        entry_price=1.1,
    )


class TestChannel:
    """Single-kind channel."""

    @pytest.mark.asyncio
    async def test_emit_reaches_listeners_in_order(self):
        channel: Channel[int] = Channel("numbers")
        received = []

        async def first(value):
            received.append(("first", value))

        async def second(value):
            received.append(("second", value))

        channel.subscribe(first)
        channel.subscribe(second)
        await channel.emit(7)

        assert received == [("first", 7), ("second", 7)]

    @pytest.mark.asyncio
    async def test_release_unregisters(self):
        channel: Channel[int] = Channel("numbers")
        listener = AsyncMock()

        handle = channel.subscribe(listener)
        handle.release()
        await channel.emit(1)

        listener.assert_not_awaited()
        assert channel.listener_count == 0

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self):
        channel: Channel[int] = Channel("numbers")
        broken = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()

        channel.subscribe(broken)
        channel.subscribe(healthy)
        await channel.emit(3)

        healthy.assert_awaited_once_with(3)


class TestSubscription:
    """Release handle semantics."""

    def test_release_is_idempotent(self):
        calls = []
        handle = Subscription([lambda: calls.append(1)])

        handle.release()
        handle.release()

        assert calls == [1]
        assert handle.released


class TestBotEvents:
    """Composite subscription across the three event kinds."""

    @pytest.mark.asyncio
    async def test_each_kind_routes_to_its_listener(self):
        events = BotEvents()
        on_state, on_started, on_completed = AsyncMock(), AsyncMock(), AsyncMock()
        events.subscribe(on_state, on_started, on_completed)

        snapshot = BotSnapshot()
        trade = make_trade()
        await events.state.emit(snapshot)
        await events.trade_started.emit(trade)
        await events.trade_completed.emit(trade)

        on_state.assert_awaited_once_with(snapshot)
        on_started.assert_awaited_once_with(trade)
        on_completed.assert_awaited_once_with(trade)

    def test_one_release_drops_all_three(self):
        events = BotEvents()
        handle = events.subscribe(AsyncMock(), AsyncMock(), AsyncMock())
        other = events.subscribe(AsyncMock(), AsyncMock(), AsyncMock())
        assert events.listener_count == 6

        handle.release()
        assert events.listener_count == 3

        handle.release()
        assert events.listener_count == 3

        other.release()
        assert events.listener_count == 0
