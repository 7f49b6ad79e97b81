import math
import re
import time
from typing import Callable, NamedTuple

from cachetools import TLRUCache

from taskforge.cache.backends import CacheBackend


class _Entry(NamedTuple):
    value: str
    ttl: float | None


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    if entry.ttl is None:
        return math.inf
    return now + entry.ttl


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a Redis-style glob (`*`, `?`) into an anchored regex."""
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


class InMemoryCacheBackend(CacheBackend):
    """
    Process-local stand-in for Redis, used when no server is reachable.

    Entries live in a cachetools TLRUCache with a per-entry expiry. Expired
    entries are dropped before every read and before pattern scans, so they
    are never returned. Nothing is persisted across restarts.

    Args:
        maxsize: Maximum number of entries held before LRU eviction
        timer: Clock in seconds; swap in a fake for deterministic tests
    """

    name = "memory"

    def __init__(
        self, maxsize: int = 10_000, timer: Callable[[], float] = time.monotonic
    ):
        self._store: TLRUCache = TLRUCache(
            maxsize=maxsize, ttu=_time_to_use, timer=timer
        )

    def _evict_expired(self) -> None:
        self._store.expire()

    async def get(self, key: str) -> str | None:
        self._evict_expired()
        entry = self._store.get(key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        self._store[key] = _Entry(value, None)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = _Entry(value, ttl_seconds)

    async def delete(self, key: str) -> int:
        self._evict_expired()
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def exists(self, key: str) -> bool:
        self._evict_expired()
        return key in self._store

    async def scan_keys(self, pattern: str) -> list[str]:
        self._evict_expired()
        regex = glob_to_regex(pattern)
        return [key for key in list(self._store.keys()) if regex.fullmatch(key)]

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._store)
