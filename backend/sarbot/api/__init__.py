"""API endpoints."""

from sarbot.api.routes import router
from sarbot.api.websocket import RealtimeBroadcaster, Subscriber, websocket_endpoint

__all__ = [
    "router",
    "websocket_endpoint",
    "RealtimeBroadcaster",
    "Subscriber",
]
