"""Cache backends exercised by the health cache probe.

``memory://`` selects an in-process TTL store (single worker / dev),
``redis://...`` selects redis-py. Both expose ``set(key, value, ttl)``,
``get(key)`` and ``delete(key)`` with string values.
"""

from __future__ import annotations

import logging
import threading
import time

import redis

logger = logging.getLogger(__name__)


class MemoryCache:
    """Thread-safe in-process key/value store with per-key expiry."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._data[key] = (value, time.monotonic() + ttl)

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class RedisCache:
    """redis-py backed cache. Connection is lazy; errors propagate to the probe."""

    def __init__(self, url: str, socket_timeout: float = 5.0) -> None:
        self._url = url
        self._client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )

    def set(self, key: str, value: str, ttl: int) -> None:
        self._client.setex(key, ttl, value)

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def close(self) -> None:
        self._client.close()


def build_cache(url: str, socket_timeout: float = 5.0) -> MemoryCache | RedisCache:
    """Pick a cache backend from a URL scheme."""
    if url.startswith(("redis://", "rediss://", "unix://")):
        logger.info("Cache backend: redis (%s)", url.split("@")[-1])
        return RedisCache(url, socket_timeout=socket_timeout)
    if url.startswith("memory://"):
        logger.info("Cache backend: memory")
        return MemoryCache()
    raise ValueError(f"Unsupported cache URL: {url}")
