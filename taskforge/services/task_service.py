import logging
import math
from dataclasses import dataclass
from typing import Any

from taskforge.cache.decorators import async_cached, async_cached_expire
from taskforge.cache.keys import task_key, task_list_key
from taskforge.cache.layer import CacheLayer
from taskforge.core.config import Settings
from taskforge.exceptions import TaskNotFoundError
from taskforge.repositories import TaskRepository
from taskforge.schemas import (
    MAX_PAGE_SIZE,
    DeleteResult,
    PaginatedTasks,
    TaskCreate,
    TaskQuery,
    TaskRead,
    TaskUpdate,
)
from taskforge.services.filters import build_task_filter, build_task_order

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = MAX_PAGE_SIZE


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    skip: int
    take: int


def resolve_pagination(query: TaskQuery) -> Pagination:
    """page/limit drive skip/take unless the caller sets skip or take explicitly."""
    page = query.page or DEFAULT_PAGE
    limit = min(query.limit or DEFAULT_LIMIT, MAX_LIMIT)
    skip = query.skip if query.skip is not None else (page - 1) * limit
    take = query.take if query.take is not None else limit
    return Pagination(page=page, limit=limit, skip=skip, take=take)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def parse_task_id(task_id: Any) -> int:
    if isinstance(task_id, bool):
        raise TaskNotFoundError.invalid_id(task_id)
    try:
        return int(str(task_id).strip())
    except (TypeError, ValueError):
        raise TaskNotFoundError.invalid_id(task_id)


def _task_key_for(task_id: Any, *_, **__) -> str:
    return task_key(parse_task_id(task_id))


class TaskService:
    """
    Cache-aside reads and invalidating writes over a task repository.

    Reads go cache first and populate on miss (entity TTL 600s, list TTL 300s
    by default). Every mutation deletes `task:<id>` where one can exist and
    then every `tasks:*` list entry. Invalidation is not transactional with
    the store write: a read landing in between can see a stale entry until it
    expires. Concurrent updates to one task are last-write-wins.
    """

    def __init__(self, repository: TaskRepository, cache: CacheLayer, settings: Settings):
        self.repository = repository
        self.cache = cache
        self.settings = settings

    @async_cached(
        lambda query: task_list_key(query.cache_params()),
        PaginatedTasks,
        "task_list_cache_ttl_seconds",
    )
    async def find_all(self, query: TaskQuery) -> PaginatedTasks:
        pagination = resolve_pagination(query)
        task_filter = build_task_filter(query)
        order = build_task_order(query)

        tasks = await self.repository.find_many(
            task_filter, pagination.skip, pagination.take, order
        )
        total = await self.repository.count(task_filter)

        return PaginatedTasks(
            tasks=tasks,
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            total_pages=total_pages(total, pagination.limit),
        )

    @async_cached(_task_key_for, TaskRead, "task_cache_ttl_seconds")
    async def find_one(self, task_id: Any) -> TaskRead:
        task_id = parse_task_id(task_id)
        task = await self.repository.find_unique(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    # a new id cannot have an entity entry yet
    @async_cached_expire()
    async def create(self, task_data: TaskCreate) -> TaskRead:
        task = await self.repository.create(task_data)
        logger.info(f"Created task {task.id}")
        return task

    @async_cached_expire(_task_key_for)
    async def update(self, task_id: Any, task_data: TaskUpdate) -> TaskRead:
        task_id = parse_task_id(task_id)
        task = await self.repository.update(task_id, task_data.changes())
        logger.info(f"Updated task {task_id}")
        return task

    @async_cached_expire(_task_key_for)
    async def remove(self, task_id: Any) -> DeleteResult:
        task_id = parse_task_id(task_id)
        await self.repository.delete(task_id)
        logger.info(f"Deleted task {task_id}")
        return DeleteResult(message="Task deleted successfully")
