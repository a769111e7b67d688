"""Key/value cache with per-key TTL.

Two interchangeable backends implement :class:`Cache`:

- :class:`InMemoryCache` keeps entries in a process-local dict and evicts
  each key with a one-shot timer scheduled on the event loop. Nothing
  survives a restart and separate processes never see each other's writes.
- :class:`RedisCache` stores orjson-encoded values in Redis so every API
  process shares one view and invalidations cross process boundaries.

Services receive the cache through the ``get_cache`` dependency instead of
reaching for a module global.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from redis.asyncio import Redis

from crackzone.config import get_settings
from crackzone.utils.json_utils import json_dumps, json_loads

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600


class Cache(ABC):
    """Cache interface used by services."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        """Store a JSON-compatible value for ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Remove keys; missing keys are ignored."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def flush(self) -> None:
        """Remove every entry owned by this cache."""

    async def close(self) -> None:
        return None


class InMemoryCache(Cache):
    """Process-local cache with a scheduled eviction per key."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._data)

    def _cancel_timer(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _expire(self, key: str) -> None:
        self._timers.pop(key, None)
        self._data.pop(key, None)

    async def get(self, key: str) -> Any | None:
        return self._data.get(key)

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        self._cancel_timer(key)
        self._data[key] = value
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(ttl, self._expire, key)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._cancel_timer(key)
            self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def flush(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._data.clear()

    async def close(self) -> None:
        await self.flush()


class RedisCache(Cache):
    """Redis-backed cache shared across API processes."""

    def __init__(self, client: Redis, prefix: str = "cz:cache:"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        return json_loads(raw)

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> None:
        await self.client.set(self._key(key), json_dumps(value), ex=ttl)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self.client.delete(*(self._key(k) for k in keys))

    async def exists(self, key: str) -> bool:
        return bool(await self.client.exists(self._key(key)))

    async def flush(self) -> None:
        batch: list[str] = []
        async for key in self.client.scan_iter(match=f"{self.prefix}*", count=500):
            batch.append(key)
            if len(batch) >= 500:
                await self.client.delete(*batch)
                batch.clear()
        if batch:
            await self.client.delete(*batch)


_cache: Cache | None = None


def init_cache(redis: Redis | None = None) -> Cache:
    """Create the process cache for the configured backend."""
    global _cache

    settings = get_settings()
    if settings.cache_backend == "redis":
        if redis is None:
            raise RuntimeError("cache_backend is 'redis' but Redis is not connected")
        _cache = RedisCache(redis)
    else:
        _cache = InMemoryCache()

    logger.info(f"Cache initialized (backend={settings.cache_backend})")
    return _cache


async def close_cache() -> None:
    global _cache
    if _cache is not None:
        await _cache.close()
        _cache = None


def get_cache() -> Cache:
    """FastAPI dependency returning the process cache."""
    if _cache is None:
        return init_cache()
    return _cache


# =============================================================================
# Key layout
# =============================================================================


def user_key(user_id: str) -> str:
    """Principal snapshot used by the auth dependency."""
    return f"user:{user_id}"


def user_profile_key(user_id: str) -> str:
    """Public profile payload."""
    return f"user:profile:{user_id}"


def refresh_key(user_id: str) -> str:
    return f"refresh:{user_id}"


def verification_key(code: str) -> str:
    return f"verification:{code}"


def reset_key(token: str) -> str:
    return f"reset:{token}"


async def invalidate_user(cache: Cache, user_id: str) -> None:
    await cache.delete(user_key(user_id), user_profile_key(user_id))
