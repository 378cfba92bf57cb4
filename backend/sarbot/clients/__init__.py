"""External service clients."""

from sarbot.clients.candle_service import CandleServiceClient, CandleServiceError
from sarbot.clients.session import (
    AuthSession,
    RawToken,
    SessionPayload,
    Unrecognized,
    account_info,
    parse_session,
)

__all__ = [
    "CandleServiceClient",
    "CandleServiceError",
    "AuthSession",
    "RawToken",
    "SessionPayload",
    "Unrecognized",
    "account_info",
    "parse_session",
]
