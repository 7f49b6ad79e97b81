import logging
from functools import wraps
from typing import Callable, Optional, Type

from pydantic import BaseModel, ValidationError

from taskforge.cache.keys import TASK_LIST_PATTERN

logger = logging.getLogger(__name__)


def async_cached(
    key_builder: Callable[..., str], model: Type[BaseModel], ttl_setting: str
):
    """
    Cache-aside for async service methods returning a pydantic model.

    The decorated method's owner must expose `cache` (CacheLayer) and
    `settings`. key_builder receives the same args/kwargs minus self; the TTL
    is read from the named setting at call time. A hit is rebuilt with
    model_validate_json, which restores datetimes from their ISO form.

    Example:
      @async_cached(lambda task_id: f"task:{task_id}", TaskRead, "task_cache_ttl_seconds")
      async def find_one(self, task_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)

            raw = await self.cache.get_json(key)
            if raw is not None:
                try:
                    return model.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning(f"Discarding unreadable cache entry {key}: {e}")

            value = await fn(self, *args, **kwargs)
            if value is not None:
                ttl = getattr(self.settings, ttl_setting)
                await self.cache.set_json(key, value, ttl=ttl)
            return value

        return wrapper

    return decorator


def async_cached_expire(
    key_builder: Optional[Callable[..., str]] = None, lists: bool = True
):
    """
    Invalidate after a successful mutation: the entity key from key_builder
    (if given) and, when `lists` is set, every list key.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            if key_builder is not None:
                await self.cache.delete(key_builder(*args, **kwargs))
            if lists:
                await self.cache.delete_pattern(TASK_LIST_PATTERN)
            return result

        return wrapper

    return decorator
