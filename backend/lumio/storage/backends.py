"""
Key-value backends shared by the analysis cache and the result store.

  InMemoryBackend   dict + lazy TTL eviction; single process only (dev, tests)
  RedisBackend      redis-py asyncio client, SET EX for TTL

Values are strings (JSON documents); callers own serialization. Backends
raise on failure. Whether a failure is tolerated is the caller's decision:
the cache swallows it, the result store does not.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from lumio.core.config import Settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class KeyValueBackend(ABC):

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    async def delete(self, *keys: str) -> int: ...

    @abstractmethod
    async def ping(self) -> bool: ...

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryBackend(KeyValueBackend):
    """
    Expired entries are dropped when touched; nothing runs in the background.

    Guarded by a threading.Lock rather than asyncio.Lock so one instance may be
    shared by the API loop and an eager Celery task running on another loop.
    """

    def __init__(self, clock=time.monotonic) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock  = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key) is not None:
                    removed += 1
                self._data.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._data) if self._live(key) is not None)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

def create_redis_client(settings: Settings) -> "Redis":
    import redis.asyncio as redis

    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.store_timeout_seconds,
        socket_timeout=settings.store_timeout_seconds,
    )


class RedisBackend(KeyValueBackend):

    def __init__(self, client: "Redis", key_prefix: str = "lumio:") -> None:
        self._client = client
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._client.set(self._key(key), value, ex=ttl_seconds or None)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.delete(*(self._key(k) for k in keys)))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
