"""Typed in-process event channels.

Each event kind gets its own ``Channel``. Subscribing returns a
``Subscription`` handle; releasing the handle is the only way to
unregister, and releasing twice is a no-op.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, TypeVar

from sarcore.models import BotSnapshot, TradeRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Awaitable[None]]


class Subscription:
    """Handle for one or more channel registrations."""

    def __init__(self, releasers: list[Callable[[], None]]):
        self._releasers = releasers
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Unregister every listener held by this handle."""
        if self._released:
            return
        self._released = True
        for releaser in self._releasers:
            releaser()
        self._releasers = []


class Channel(Generic[T]):
    """Single-kind event channel with async listeners."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Subscription:
        """Register a listener and return its release handle."""
        self._listeners.append(listener)
        return Subscription([lambda: self._remove(listener)])

    def _remove(self, listener: Listener[T]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, payload: T) -> None:
        """Deliver payload to every listener, isolating listener failures."""
        for listener in list(self._listeners):
            try:
                await listener(payload)
            except Exception as e:
                logger.error(f"{self.name} listener error: {e}")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class BotEvents:
    """The three event kinds a running bot publishes."""

    def __init__(self):
        self.state: Channel[BotSnapshot] = Channel("state")
        self.trade_started: Channel[TradeRecord] = Channel("trade-started")
        self.trade_completed: Channel[TradeRecord] = Channel("trade-completed")

    def subscribe(
        self,
        on_state: Listener[BotSnapshot],
        on_trade_started: Listener[TradeRecord],
        on_trade_completed: Listener[TradeRecord],
    ) -> Subscription:
        """Register one listener per kind behind a single handle."""
        handles = [
            self.state.subscribe(on_state),
            self.trade_started.subscribe(on_trade_started),
            self.trade_completed.subscribe(on_trade_completed),
        ]
        return Subscription([h.release for h in handles])

    @property
    def listener_count(self) -> int:
        return (
            self.state.listener_count
            + self.trade_started.listener_count
            + self.trade_completed.listener_count
        )
