"""HTTP client for the local candle data service."""

from typing import Any

import httpx

from sarcore.models import Candle


class CandleServiceError(Exception):
    """The candle service did not return a usable window."""


def parse_candle(item: dict[str, Any]) -> Candle:
    """Build a Candle from one service payload entry."""
    open_time = item.get("time", item.get("openTime", item.get("open_time", 0)))
    return Candle(
        open_time=int(open_time),
        open=float(item["open"]),
        high=float(item["high"]),
        low=float(item["low"]),
        close=float(item["close"]),
        volume=float(item.get("volume") or 0),
    )


class CandleServiceClient:
    """Client for ``POST /api/candles`` on the candle service.

    Request:  {"asset": ..., "timeframe": ..., "count": ...}
    Response: {"success": bool, "candles": [{time, open, high, low, close, volume}, ...]}

    One attempt per call; any failure raises CandleServiceError.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:5001",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch_candles(self, asset: str, timeframe: str, count: int) -> list[Candle]:
        """
        Fetch a candle window from the service.

        Args:
            asset: Asset name (e.g., "EURUSD_otc")
            timeframe: "1m", "5m" or "15m"
            count: Number of candles requested

        Returns:
            Candles ordered by ascending open time (never empty)

        Raises:
            CandleServiceError: Transport failure, bad status, or unusable payload
        """
        client = await self._get_client()
        try:
            response = await client.post(
                "/api/candles",
                json={"asset": asset, "timeframe": timeframe, "count": count},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CandleServiceError(f"{type(e).__name__}: {e}") from e

        if not isinstance(data, dict) or not data.get("success"):
            raise CandleServiceError("service reported failure")

        items = data.get("candles") or []
        if not isinstance(items, list):
            raise CandleServiceError(f"candles is {type(items).__name__}, expected list")
        if not items:
            raise CandleServiceError("empty candle list")

        try:
            candles = [parse_candle(item) for item in items]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CandleServiceError(f"malformed candle: {e}") from e

        candles.sort(key=lambda c: c.open_time)
        return candles
