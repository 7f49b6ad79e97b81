import enum
import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis, RedisError
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from taskforge.cache.backends import CacheBackend, RedisCacheBackend
from taskforge.cache.memory import InMemoryCacheBackend
from taskforge.core.config import Settings, get_settings
from taskforge.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    ATTEMPTING = "attempting"
    CONNECTED = "connected"
    FALLBACK = "fallback"


class CacheLayer:
    """
    Resolves the cache backend once at startup and fronts it for the service.

    Resolution:
    - REDIS_URL set: exactly one attempt against it
    - otherwise REDIS_HOST, or each of the candidate hosts in order, at REDIS_PORT
    - every attempt failed: in-memory fallback (not persisted across restarts)

    The outcome is final for the process lifetime. Once resolved, callers only
    see the JSON helpers below; a CacheUnavailableError from the live backend
    is logged and treated as a miss (reads) or a no-op (writes), so a cache
    outage never becomes a request failure.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[CacheBackend] = None,
    ):
        self._settings = settings
        self._backend: CacheBackend | None = backend
        self.state = CacheState.DISCONNECTED
        if backend is not None:
            self.state = (
                CacheState.FALLBACK
                if isinstance(backend, InMemoryCacheBackend)
                else CacheState.CONNECTED
            )

        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
            "invalidations": 0,
        }

    @property
    def backend(self) -> CacheBackend:
        if self._backend is None:
            raise RuntimeError("Cache layer used before init_cache()")
        return self._backend

    @property
    def is_resolved(self) -> bool:
        return self.state in (CacheState.CONNECTED, CacheState.FALLBACK)

    async def init_cache(self) -> CacheBackend:
        """Resolve the backend. Safe to call more than once."""
        if self.is_resolved:
            return self.backend

        if self._settings is None:
            self._settings = get_settings()
        settings = self._settings

        self.state = CacheState.ATTEMPTING
        if settings.redis_enabled:
            client = await self._connect(settings)
        else:
            logger.info("Redis disabled by configuration")
            client = None

        if client is not None:
            self._backend = RedisCacheBackend(client)
            self.state = CacheState.CONNECTED
            logger.info("Connected to Redis cache")
        else:
            self._backend = InMemoryCacheBackend(maxsize=settings.memory_cache_maxsize)
            self.state = CacheState.FALLBACK
            logger.warning(
                "Redis connection failed; falling back to in-memory cache. "
                "Cached data will not persist across restarts."
            )
        return self._backend

    async def _connect(self, settings: Settings) -> Redis | None:
        if settings.redis_url:
            return await self._try_connect(
                settings.redis_url,
                lambda **opts: Redis.from_url(settings.redis_url, **opts),
            )

        hosts = (
            [settings.redis_host]
            if settings.redis_host
            else list(settings.redis_candidate_hosts)
        )
        for host in hosts:
            client = await self._try_connect(
                f"{host}:{settings.redis_port}",
                lambda **opts: Redis(host=host, port=settings.redis_port, **opts),
            )
            if client is not None:
                return client
        return None

    async def _try_connect(self, target: str, factory) -> Redis | None:
        settings = self._settings
        client = factory(
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.redis_connect_timeout,
            retry=Retry(ExponentialBackoff(), settings.redis_max_retries),
        )
        try:
            await client.ping()
            return client
        except (RedisError, OSError) as e:
            # Expected when no server runs at this address
            logger.info(f"Failed to connect to Redis at {target}: {e}")
            try:
                await client.aclose()
            except (RedisError, OSError) as close_error:
                logger.debug(f"Ignoring close error for {target}: {close_error}")
            return None

    def _serialize(self, value: Any) -> str:
        if hasattr(value, "model_dump_json"):
            return value.model_dump_json()
        return json.dumps(value, default=str)

    async def get_json(self, key: str) -> str | None:
        """Return the raw JSON stored under key, or None on miss or outage."""
        try:
            raw = await self.backend.get(key)
        except CacheUnavailableError as e:
            logger.error(f"Cache GET error for {key}: {e}")
            self.stats["errors"] += 1
            return None

        if raw is None:
            self.stats["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return None

        self.stats["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return raw

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store value (a pydantic model or JSON-able data) under key."""
        data = self._serialize(value)
        try:
            if ttl:
                await self.backend.set_with_ttl(key, data, ttl)
            else:
                await self.backend.set(key, data)
            logger.debug(f"Cached {key} (ttl={ttl})")
        except CacheUnavailableError as e:
            logger.error(f"Cache SET error for {key}: {e}")
            self.stats["errors"] += 1

    async def delete(self, key: str) -> int:
        try:
            return await self.backend.delete(key)
        except CacheUnavailableError as e:
            logger.error(f"Cache DELETE error for {key}: {e}")
            self.stats["errors"] += 1
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern."""
        try:
            keys = await self.backend.scan_keys(pattern)
            deleted = await self.backend.delete_many(*keys) if keys else 0
        except CacheUnavailableError as e:
            logger.error(f"Pattern delete error for {pattern}: {e}")
            self.stats["errors"] += 1
            return 0

        self.stats["invalidations"] += 1
        logger.info(f"Pattern delete completed for {pattern}: {deleted} key(s)")
        return deleted

    async def ping(self) -> bool:
        try:
            return await self.backend.ping()
        except CacheUnavailableError as e:
            logger.error(f"Cache PING error: {e}")
            return False

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._backend is None:
            return
        try:
            await self._backend.close()
            logger.info("Cache connection closed")
        except CacheUnavailableError as e:
            logger.error(f"Error closing cache: {e}")

    def get_stats(self) -> dict:
        lookups = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "backend": self._backend.name if self._backend else None,
            "state": self.state.value,
            "hit_rate": self.stats["hits"] / lookups if lookups > 0 else 0,
        }
