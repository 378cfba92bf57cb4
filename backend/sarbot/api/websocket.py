"""WebSocket endpoint for real-time updates."""

import asyncio
import logging
from typing import Any, Callable

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from sarcore.events import BotEvents, Subscription
from sarcore.models import BotSnapshot, TradeRecord

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], BotSnapshot]

# Messages beyond this per subscriber are dropped for it
MAX_PENDING_MESSAGES = 256


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def encode_message(msg_type: str, data: Any) -> str:
    """Wire format: {"type": ..., "data": ...}."""
    return _orjson_dumps({"type": msg_type, "data": data})


def is_writable(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class Subscriber:
    """One connected client: a FIFO queue drained by its own sender task."""

    def __init__(self, websocket: WebSocket, max_pending: int = MAX_PENDING_MESSAGES):
        self.websocket = websocket
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_pending)
        self.subscription: Subscription | None = None
        self.sender: asyncio.Task | None = None
        self.closed = False

    def send(self, text: str) -> bool:
        """Queue a message. Returns False if it was skipped."""
        if self.closed or not is_writable(self.websocket):
            return False
        try:
            self.queue.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("WebSocket subscriber backlog full, message skipped")
            return False
        return True

    async def run_sender(self) -> None:
        while True:
            text = await self.queue.get()
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                logger.warning(f"Failed to send message: {e}")
                self.closed = True
                return


class RealtimeBroadcaster:
    """Fan bot events out to WebSocket subscribers."""

    def __init__(self, events: BotEvents, snapshot: SnapshotProvider):
        self._events = events
        self._snapshot = snapshot
        self._subscribers: list[Subscriber] = []

    async def subscribe(self, websocket: WebSocket) -> Subscriber:
        """
        Register an accepted WebSocket.

        The current snapshot is queued first, then every state,
        trade-started and trade-completed event.
        """
        subscriber = Subscriber(websocket)
        subscriber.send(encode_message("state", self._snapshot().to_wire()))

        async def on_state(snapshot: BotSnapshot) -> None:
            subscriber.send(encode_message("state", snapshot.to_wire()))

        async def on_trade_started(trade: TradeRecord) -> None:
            subscriber.send(encode_message("trade-started", trade.to_wire()))

        async def on_trade_completed(trade: TradeRecord) -> None:
            subscriber.send(encode_message("trade-completed", trade.to_wire()))

        subscriber.subscription = self._events.subscribe(
            on_state, on_trade_started, on_trade_completed
        )
        subscriber.sender = asyncio.create_task(subscriber.run_sender())
        self._subscribers.append(subscriber)
        logger.info(f"WebSocket connected. Total connections: {len(self._subscribers)}")
        return subscriber

    async def unsubscribe(self, subscriber: Subscriber) -> None:
        """Release all event registrations and stop the sender."""
        subscriber.closed = True
        if subscriber.subscription is not None:
            subscriber.subscription.release()
        if subscriber.sender is not None and not subscriber.sender.done():
            subscriber.sender.cancel()
            try:
                await subscriber.sender
            except asyncio.CancelledError:
                pass
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._subscribers)}")

    async def close(self) -> None:
        for subscriber in list(self._subscribers):
            await self.unsubscribe(subscriber)

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._subscribers)


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Messages sent to clients:
    - state: Full bot snapshot (sent on connect and every tick)
    - trade-started: Trade record at open
    - trade-completed: Settled trade record

    Message format:
    {
        "type": "state",
        "data": {...}
    }
    """
    broadcaster: RealtimeBroadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    subscriber = await broadcaster.subscribe(websocket)

    try:
        # Keep connection alive and handle incoming messages
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=60.0,
                )

                try:
                    message = orjson.loads(data)
                    handle_client_message(subscriber, message)
                except orjson.JSONDecodeError:
                    subscriber.send(encode_message("error", {"message": "Invalid JSON"}))

            except asyncio.TimeoutError:
                # Send ping to keep connection alive
                subscriber.send(encode_message("ping", {}))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await broadcaster.unsubscribe(subscriber)


def handle_client_message(subscriber: Subscriber, message: Any) -> None:
    """Handle incoming message from client."""
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        subscriber.send(encode_message("pong", {}))
    else:
        subscriber.send(encode_message("error", {"message": f"Unknown message type: {msg_type}"}))
