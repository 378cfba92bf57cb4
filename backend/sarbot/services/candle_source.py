"""Candle source with short-lived caching and synthetic fallback.

Lookup order for (asset, timeframe):
1. Cache hit younger than the TTL: return the cached list as-is
2. In-flight fetch for the same key: await it
3. Candle service (one attempt)
4. Synthetic generator, if fallback is enabled

One instance is created per bot run; its cache and drift state are
dropped with it.
"""

import asyncio
import logging
import time
from typing import Callable

from sarbot.clients import CandleServiceClient, CandleServiceError
from sarbot.services.synthetic_candles import SyntheticCandleGenerator
from sarcore.models import Candle

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_MS = 3000

CacheKey = tuple[str, str]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class CandleSource:
    """Cached candle access for the signal aggregator."""

    def __init__(
        self,
        client: CandleServiceClient | None = None,
        generator: SyntheticCandleGenerator | None = None,
        cache_ttl_ms: float = DEFAULT_CACHE_TTL_MS,
        fallback_enabled: bool = True,
        clock_ms: Callable[[], float] = _monotonic_ms,
    ):
        self.client = client
        self.generator = generator or SyntheticCandleGenerator()
        self.cache_ttl_ms = cache_ttl_ms
        self.fallback_enabled = fallback_enabled
        self._clock_ms = clock_ms

        self._cache: dict[CacheKey, tuple[float, int, list[Candle]]] = {}
        self._inflight: dict[CacheKey, tuple[int, asyncio.Task]] = {}

    def _is_fresh(self, fetched_at: float) -> bool:
        return self._clock_ms() - fetched_at < self.cache_ttl_ms

    async def get_candles(self, asset: str, timeframe: str, limit: int = 50) -> list[Candle] | None:
        """
        Get a candle window for an asset and timeframe.

        Cache and in-flight entries remember the window size they were
        fetched for; a smaller window never serves a larger request.

        Returns:
            Candles in ascending open time, or None if neither the
            service nor the fallback produced any
        """
        key = (asset, timeframe)

        cached = self._cache.get(key)
        if cached is not None:
            fetched_at, requested, candles = cached
            if requested >= limit and self._is_fresh(fetched_at):
                return candles

        inflight = self._inflight.get(key)
        if inflight is not None and inflight[0] >= limit:
            task = inflight[1]
        else:
            task = asyncio.ensure_future(self._load(key, limit))
            self._inflight[key] = (limit, task)
            task.add_done_callback(lambda t, key=key: self._clear_inflight(key, t))

        # Shielded so one cancelled caller does not cancel the shared fetch
        return await asyncio.shield(task)

    def _clear_inflight(self, key: CacheKey, task: asyncio.Task) -> None:
        entry = self._inflight.get(key)
        if entry is not None and entry[1] is task:
            del self._inflight[key]

    async def _load(self, key: CacheKey, limit: int) -> list[Candle] | None:
        asset, timeframe = key
        candles = await self._fetch_primary(asset, timeframe, limit)

        if candles is None and self.fallback_enabled:
            candles = self.generator.generate(asset, timeframe, limit) or None

        if candles is None:
            logger.warning(f"No candles available for {asset}/{timeframe}")
            return None

        existing = self._cache.get(key)
        if existing is None or existing[1] <= limit or not self._is_fresh(existing[0]):
            self._cache[key] = (self._clock_ms(), limit, candles)
        return candles

    async def _fetch_primary(self, asset: str, timeframe: str, limit: int) -> list[Candle] | None:
        if self.client is None:
            return None
        try:
            return await self.client.fetch_candles(asset, timeframe, limit)
        except CandleServiceError as e:
            logger.warning(f"Candle service unavailable for {asset}/{timeframe}, using fallback: {e}")
            return None

    async def get_current_price(self, asset: str) -> float | None:
        """Close of the most recent 1m candle, or None."""
        try:
            candles = await self.get_candles(asset, "1m", 1)
        except Exception as e:
            logger.error(f"Current price lookup failed for {asset}: {e}")
            return None
        if not candles:
            return None
        return candles[-1].close

    async def close(self) -> None:
        """Release the service client. Later lookups use the fallback only."""
        if self.client is not None:
            client, self.client = self.client, None
            await client.close()
