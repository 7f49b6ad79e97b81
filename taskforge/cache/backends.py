from abc import ABC, abstractmethod
from functools import wraps
from typing import Callable

from redis.asyncio import Redis, RedisError

from taskforge.exceptions import CacheUnavailableError


class CacheBackend(ABC):
    """
    Minimal key-value contract shared by the Redis client and the in-memory
    fallback.

    A missing or expired key is a normal result (None / False / 0). Only
    connection-level failures raise, as CacheUnavailableError.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value without expiry."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires ttl_seconds from now."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a key. Returns the number of keys removed."""

    async def delete_many(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += await self.delete(key)
        return removed

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a live key exists."""

    @abstractmethod
    async def scan_keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob pattern (`*` and `?` wildcards)."""

    @abstractmethod
    async def ping(self) -> bool:
        """Liveness check, used for health reporting."""

    async def close(self) -> None:
        """Release any underlying connection."""


def _translate_errors(fn: Callable):
    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis {fn.__name__} failed: {e}") from e

    return wrapper


class RedisCacheBackend(CacheBackend):
    """CacheBackend over a connected redis.asyncio client (decode_responses=True)."""

    name = "redis"

    def __init__(self, client: Redis, scan_count: int = 100):
        self._client = client
        self._scan_count = scan_count

    @property
    def client(self) -> Redis:
        return self._client

    @_translate_errors
    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    @_translate_errors
    async def set(self, key: str, value: str) -> None:
        await self._client.set(key, value)

    @_translate_errors
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=ttl_seconds)

    @_translate_errors
    async def delete(self, key: str) -> int:
        return await self._client.delete(key)

    @_translate_errors
    async def delete_many(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._client.delete(*keys)

    @_translate_errors
    async def exists(self, key: str) -> bool:
        return await self._client.exists(key) == 1

    @_translate_errors
    async def scan_keys(self, pattern: str) -> list[str]:
        cursor = 0
        found: list[str] = []

        while True:
            cursor, keys = await self._client.scan(
                cursor, match=pattern, count=self._scan_count
            )
            found.extend(keys)
            if cursor == 0:
                break

        # SCAN may return a key more than once
        return list(dict.fromkeys(found))

    @_translate_errors
    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis close failed: {e}") from e
