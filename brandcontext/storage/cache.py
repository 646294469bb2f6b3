"""Cache backends, prefixed driver handles, and the process-wide cache manager."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from brandcontext.types import CacheDriver

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings

logger = structlog.get_logger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """In-process cache server shared by every brand on this worker."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self._live(k)]

    async def get(self, key: str) -> str | None:
        if not self._live(key):
            return None
        return self._data[key][0]

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return self._live(key)

    async def close(self) -> None:
        self._data.clear()

    def _live(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return False
        return True


class RedisCacheBackend:
    """Redis-backed cache shared across worker processes."""

    def __init__(self, url: str) -> None:
        from redis.asyncio import Redis

        self._client = Redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        value: str | None = await self._client.get(key)
        return value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self._client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> bool:
        return bool(await self._client.delete(key))

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(key))

    async def close(self) -> None:
        await self._client.aclose()


class PrefixedCache:
    """Cache driver handle bound to a single key prefix.

    Values are JSON encoded. The prefix is fixed for the lifetime of the
    handle; switching brands means building a new handle.
    """

    def __init__(self, backend: CacheBackend, prefix: str) -> None:
        self._backend = backend
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str, default: Any = None) -> Any:
        raw = await self._backend.get(self.key(key))
        if raw is None:
            return default
        return json.loads(raw)

    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        await self._backend.set(self.key(key), json.dumps(value, default=str), ttl)

    async def forget(self, key: str) -> bool:
        return await self._backend.delete(self.key(key))

    async def has(self, key: str) -> bool:
        return await self._backend.exists(self.key(key))


class CacheManager:
    """Holds the process-wide cache prefix and the driver handle built from it."""

    def __init__(self, backend: CacheBackend, prefix: str = "") -> None:
        self._backend = backend
        self._prefix = prefix
        self._driver: PrefixedCache | None = None

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def prefix(self) -> str:
        return self._prefix

    def set_prefix(self, prefix: str) -> None:
        self._prefix = prefix

    def forget_driver(self) -> None:
        """Drop the instantiated driver so the next access rebuilds it."""
        if self._driver is not None:
            logger.debug("cache_driver_evicted", prefix=self._driver.prefix)
        self._driver = None

    async def close(self) -> None:
        self._driver = None
        await self._backend.close()

    def store(self) -> PrefixedCache:
        """Return the driver for the current prefix, instantiating it if needed."""
        if self._driver is None:
            self._driver = PrefixedCache(self._backend, self._prefix)
        return self._driver


def create_cache_backend(settings: Settings) -> CacheBackend:
    if settings.cache_driver == CacheDriver.REDIS:
        return RedisCacheBackend(settings.redis_url)
    return MemoryCacheBackend()
