"""Broker session payload (SSID) parsing.

The SSID comes in one of several shapes:

    42["auth",{"session":"...","isDemo":1,"uid":123,"platform":2}]   Socket.IO frame
    ["auth",{...}]  or  {...}                                          plain JSON
    a1b2c3d4e5f6...                                                    bare token

``parse_session`` never raises; anything it cannot read becomes
``Unrecognized``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

import orjson

logger = logging.getLogger(__name__)

SOCKETIO_EVENT_PREFIX = "42"
MIN_TOKEN_LENGTH = 10


@dataclass(frozen=True, slots=True)
class AuthSession:
    """Structured auth payload."""

    uid: int = 0
    is_demo: bool = False
    session: str = ""


@dataclass(frozen=True, slots=True)
class RawToken:
    """Opaque session token."""

    token: str


@dataclass(frozen=True, slots=True)
class Unrecognized:
    """Payload that matched no known shape."""

    raw: str = ""


SessionPayload = Union[AuthSession, RawToken, Unrecognized]


def _auth_from_mapping(data: dict[str, Any]) -> AuthSession:
    try:
        uid = int(data.get("uid") or 0)
    except (TypeError, ValueError):
        uid = 0
    session = data.get("session") or data.get("sessionToken") or ""
    return AuthSession(
        uid=uid,
        is_demo=data.get("isDemo") == 1,
        session=str(session),
    )


def _auth_from_array(data: Any) -> AuthSession | None:
    """Read ``["auth", {...}]``; None if it is not that shape."""
    if (
        isinstance(data, list)
        and len(data) >= 2
        and data[0] == "auth"
        and isinstance(data[1], dict)
    ):
        return _auth_from_mapping(data[1])
    return None


def _loads(text: str) -> Any:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


def parse_session(raw: str | None) -> SessionPayload:
    """
    Parse an SSID string into a tagged session payload.

    Shapes are tried in order: Socket.IO ``42[...]`` frame, plain JSON
    (auth array or object), then a bare token longer than 10 characters.
    """
    text = (raw or "").strip()
    if not text:
        return Unrecognized()

    if text.startswith(SOCKETIO_EVENT_PREFIX + "["):
        auth = _auth_from_array(_loads(text[len(SOCKETIO_EVENT_PREFIX):]))
        if auth is not None:
            logger.info(f"Session parsed: uid={auth.uid}, demo={auth.is_demo}")
            return auth

    data = _loads(text)
    auth = _auth_from_array(data)
    if auth is not None:
        logger.info("Session parsed from JSON array")
        return auth
    if isinstance(data, dict):
        logger.info("Session parsed from JSON object")
        return _auth_from_mapping(data)

    if len(text) > MIN_TOKEN_LENGTH:
        logger.info("Session accepted as raw token")
        return RawToken(token=text)

    logger.warning("Session payload not recognized")
    return Unrecognized(raw=text)


def account_info(payload: SessionPayload) -> dict[str, Any]:
    """Account summary exposed in the status response."""
    if isinstance(payload, AuthSession):
        return {"uid": payload.uid, "isDemo": payload.is_demo, "sessionToken": payload.session}
    if isinstance(payload, RawToken):
        return {"uid": 0, "isDemo": False, "sessionToken": payload.token}
    return {"uid": 0, "isDemo": False, "sessionToken": ""}
