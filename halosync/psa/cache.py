"""Process-local response cache for PSA API calls.

Entries are keyed by connection id, endpoint name and a canonical JSON form of
the request parameters, so tenants never share entries. The store is bounded;
on overflow the oldest inserted entry is dropped. This is a memory bound, not
an LRU.

The cache is constructed by the host process and handed to each ``PSAClient``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheTTL:
    """Recommended TTLs in seconds, by data volatility."""

    CONFIG = 300  # statuses, ticket types, priorities
    SCHEMA = 600  # custom field definitions
    LOOKUP = 120  # lookup tables
    REPORTS = 180  # report listings
    TICKETS = 30  # mutable ticket data
    REALTIME = 10  # near-real-time data


@dataclass
class CacheEntry:
    data: Any
    expires_at: float


def make_cache_key(
    connection_id: str, endpoint: str, params: dict[str, Any] | None = None
) -> str:
    """Build the composite key; parameter order does not matter."""
    param_part = json.dumps(params, sort_keys=True, default=str) if params else ""
    return f"{connection_id}:{endpoint}:{param_part}"


class ResponseCache:
    """Thread-safe TTL cache bounded by entry count.

    Example:
        >>> cache = ResponseCache(max_size=500)
        >>> cache.set("conn-1", "/Status", [{"id": 1}], ttl=CacheTTL.CONFIG)
        >>> cache.get("conn-1", "/Status")
        [{'id': 1}]
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            max_size: Maximum number of entries held at once
            default_ttl: TTL in seconds used when ``set`` gets none
            clock: Monotonic time source (injectable for tests)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(
        self, connection_id: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        key = make_cache_key(connection_id, endpoint, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.data

    def set(
        self,
        connection_id: str,
        endpoint: str,
        data: Any,
        ttl: float | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        """Store a value with an absolute expiry of now + ttl."""
        key = make_cache_key(connection_id, endpoint, params)
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            if key in self._entries:
                # Re-insert so the refreshed entry moves to the back of the order
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = CacheEntry(data=data, expires_at=expires_at)

    def invalidate(
        self, connection_id: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> None:
        key = make_cache_key(connection_id, endpoint, params)
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_connection(self, connection_id: str) -> int:
        """Drop every entry belonging to one connection.

        Returns:
            Number of entries removed
        """
        return self._invalidate_prefix(f"{connection_id}:")

    def invalidate_pattern(self, connection_id: str, endpoint_prefix: str) -> int:
        """Drop a connection's entries whose endpoint starts with a prefix.

        Returns:
            Number of entries removed
        """
        return self._invalidate_prefix(f"{connection_id}:{endpoint_prefix}")

    def invalidate_resource(self, connection_id: str, resource: str) -> int:
        """Drop a connection's entries for one resource and everything below it.

        ``/Client`` covers ``/Client`` and ``/Client/5`` but not ``/ClientContract``.
        """
        base = f"{connection_id}:{resource.rstrip('/')}"
        return self._invalidate_prefix(f"{base}:", f"{base}/")

    def _invalidate_prefix(self, *prefixes: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefixes)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries for {prefixes!r}")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {"size": len(self._entries), "max_size": self.max_size}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def cached(
    cache: ResponseCache | None,
    connection_id: str,
    endpoint: str,
    fetcher: Callable[[], Awaitable[T]],
    ttl: float | None = None,
    params: dict[str, Any] | None = None,
) -> T:
    """Return a cached value or await ``fetcher`` and cache its result.

    Passing ``cache=None`` disables caching: the fetcher always runs.
    """
    if cache is None:
        return await fetcher()

    hit = cache.get(connection_id, endpoint, params)
    if hit is not None:
        logger.debug(f"Cache hit: {endpoint}")
        return hit

    data = await fetcher()
    cache.set(connection_id, endpoint, data, ttl=ttl, params=params)
    return data
