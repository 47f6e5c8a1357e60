"""
Session-lifetime memoizing cache with in-flight request coalescing.

One instance wraps one upstream lookup. Values, including "no data" results,
are kept for the lifetime of the instance: route, registry, photo and fact
data do not change while the process runs, so there is no eviction and no TTL.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from processing.metrics import CACHE_LOOKUPS, ENRICHMENT_FAILURES

logger = logging.getLogger(__name__)

V = TypeVar("V")


def normalize_key(key: str) -> str:
    """Case-insensitive, whitespace-insensitive cache key."""
    return key.strip().lower()


class EnrichmentCache(Generic[V]):
    """
    Async cache over a fetch function ``fetch(key, *args) -> value | None``.

    Concurrent callers asking for the same uncached key share one fetch.
    A fetch that raises is logged and cached as None, so a failing upstream
    is neither retried every poll nor allowed to reach the poll loop.
    """

    def __init__(self, name: str, fetch: Callable[..., Awaitable[Optional[V]]]):
        self.name = name
        self._fetch = fetch
        self._values: Dict[str, Optional[V]] = {}
        self._in_flight: Dict[str, "asyncio.Task[Optional[V]]"] = {}

    async def get(self, key: str, *fetch_args: Any) -> Optional[V]:
        """
        Return the cached value for key, fetching it at most once.

        Extra positional arguments are forwarded to the fetch function on a
        miss only; they do not take part in the cache key.
        """
        cache_key = normalize_key(key)

        if cache_key in self._values:
            CACHE_LOOKUPS.labels(cache=self.name, result="hit").inc()
            return self._values[cache_key]

        # Get-or-create with no await in between, so it is atomic on the event loop
        task = self._in_flight.get(cache_key)
        if task is None:
            CACHE_LOOKUPS.labels(cache=self.name, result="miss").inc()
            task = asyncio.ensure_future(self._fetch_and_store(cache_key, key.strip(), fetch_args))
            self._in_flight[cache_key] = task
        else:
            CACHE_LOOKUPS.labels(cache=self.name, result="coalesced").inc()
            logger.debug(f"[{self.name}] Coalesced lookup for {cache_key}")

        # One caller being cancelled must not cancel the fetch the others share
        return await asyncio.shield(task)

    async def _fetch_and_store(self, cache_key: str, key: str, fetch_args: tuple) -> Optional[V]:
        try:
            try:
                value = await self._fetch(key, *fetch_args)
            except Exception as e:
                ENRICHMENT_FAILURES.labels(cache=self.name).inc()
                logger.warning(f"[{self.name}] Lookup failed for {key}: {e}")
                value = None

            self._values[cache_key] = value
            return value
        finally:
            # Cancellation leaves nothing cached, so the key is fetched again next poll
            self._in_flight.pop(cache_key, None)

    def peek(self, key: str) -> Optional[V]:
        """Cached value without fetching; None if absent or cached empty."""
        return self._values.get(normalize_key(key))

    def __contains__(self, key: str) -> bool:
        return normalize_key(key) in self._values

    def __len__(self) -> int:
        return len(self._values)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
