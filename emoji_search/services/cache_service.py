"""Async key-value cache stores.

Two interchangeable backends share one contract:
- RedisCacheStore: shared cache across instances (redis.asyncio)
- InMemoryCacheStore: per-process cache (cachetools TLRUCache) for local
  development and tests

Contract:
- ``get(key)`` returns the JSON-decoded value or None
- ``put(key, value, ttl=None)`` stores the JSON-encoded value, expiring
  after ``ttl`` seconds when given, never otherwise

The cache is treated as eventually-consistent external storage: any
backend failure (connection error, timeout, undecodable payload) is logged
and counted, then degrades to a miss on ``get`` and a skipped write on
``put``. A cache outage never fails a request. There is no locking;
concurrent writers race and the last ``put`` wins.

Usage:
    cache = RedisCacheStore(redis.Redis(...))
    await cache.put("search:model:cats", ["🐱", "🐈"], ttl=604800)
    value = await cache.get("search:model:cats")
"""

from __future__ import annotations

import asyncio
import json
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import redis.asyncio as redis
from cachetools import TLRUCache
from emoji_search.core.config import Settings
from emoji_search.core.errors import CacheUnavailable
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import cache_errors_total
from redis.exceptions import RedisError

logger = get_logger(__name__)


class CacheStore(ABC):
    """Base class handling serialization, deadlines and failure degradation."""

    def __init__(self, timeout_sec: Optional[float] = 2.0):
        self.timeout_sec = timeout_sec

    @abstractmethod
    async def _read(self, key: str) -> Optional[str]:
        """Return the raw stored payload or None. Raise CacheUnavailable on failure."""

    @abstractmethod
    async def _write(self, key: str, data: str, ttl: Optional[int]) -> None:
        """Store the raw payload. Raise CacheUnavailable on failure."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> Optional[Any]:
        try:
            data = await asyncio.wait_for(self._read(key), timeout=self.timeout_sec)
            if data is None:
                return None
            return json.loads(data)
        except asyncio.TimeoutError:
            self._degrade("get", key, "timeout")
        except CacheUnavailable as exc:
            self._degrade("get", key, str(exc))
        except ValueError as exc:
            self._degrade("get", key, f"undecodable payload: {exc}")
        return None

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            data = json.dumps(value, ensure_ascii=False)
            await asyncio.wait_for(self._write(key, data, ttl), timeout=self.timeout_sec)
            logger.debug("cache_set", key=key, ttl=ttl)
        except asyncio.TimeoutError:
            self._degrade("put", key, "timeout")
        except CacheUnavailable as exc:
            self._degrade("put", key, str(exc))
        except (TypeError, ValueError) as exc:
            self._degrade("put", key, f"unserializable value: {exc}")

    def _degrade(self, operation: str, key: str, reason: str) -> None:
        cache_errors_total.labels(operation=operation).inc()
        logger.warning("cache_unavailable", operation=operation, key=key, reason=reason)


class RedisCacheStore(CacheStore):
    """Cache backed by Redis, one string key per entry."""

    def __init__(self, client: redis.Redis, timeout_sec: Optional[float] = 2.0):
        super().__init__(timeout_sec=timeout_sec)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisCacheStore":
        client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD,
            db=settings.REDIS_CACHE_DB,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, timeout_sec=settings.CACHE_TIMEOUT_SEC)

    async def _read(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise CacheUnavailable(f"redis get failed: {exc}") from exc

    async def _write(self, key: str, data: str, ttl: Optional[int]) -> None:
        try:
            await self._client.set(key, data, ex=ttl)
        except RedisError as exc:
            raise CacheUnavailable(f"redis set failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


def _time_to_use(_key: str, value: Tuple[str, Optional[int]], now: float) -> float:
    _data, ttl = value
    return now + ttl if ttl is not None else math.inf


class InMemoryCacheStore(CacheStore):
    """Per-process LRU cache with per-entry expiry."""

    def __init__(self, maxsize: int = 10000, timeout_sec: Optional[float] = None, timer=time.monotonic):
        super().__init__(timeout_sec=timeout_sec)
        self._cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=timer)

    def __len__(self) -> int:
        return len(self._cache)

    async def _read(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    async def _write(self, key: str, data: str, ttl: Optional[int]) -> None:
        self._cache[key] = (data, ttl)


def create_cache_store(settings: Settings) -> CacheStore:
    """Build the cache backend selected by CACHE_BACKEND."""
    if settings.CACHE_BACKEND == "memory":
        logger.info("cache_store_initialized", backend="memory", max_size=settings.CACHE_MEMORY_MAX_SIZE)
        return InMemoryCacheStore(maxsize=settings.CACHE_MEMORY_MAX_SIZE)
    if settings.CACHE_BACKEND == "redis":
        logger.info("cache_store_initialized", backend="redis", redis_host=settings.REDIS_HOST)
        return RedisCacheStore.from_settings(settings)
    raise ValueError(f"Unknown CACHE_BACKEND: {settings.CACHE_BACKEND!r}")
