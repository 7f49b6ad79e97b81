from typing import AsyncIterator

from fastapi import Depends, Request
from typing_extensions import Annotated

from taskforge.cache.layer import CacheLayer
from taskforge.repositories import SQLModelTaskRepository, TaskRepository
from taskforge.services.task_service import TaskService


def get_cache(request: Request) -> CacheLayer:
    return request.app.state.cache


async def get_repository(request: Request) -> AsyncIterator[TaskRepository]:
    """One session-scoped repository per request, or the shared in-memory store."""
    state = request.app.state
    if state.task_store is not None:
        yield state.task_store
        return

    async with state.session_factory() as session:
        yield SQLModelTaskRepository(session)


def get_task_service(
    request: Request,
    repository: TaskRepository = Depends(get_repository),
    cache: CacheLayer = Depends(get_cache),
) -> TaskService:
    return TaskService(repository, cache, request.app.state.settings)


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
CacheDep = Annotated[CacheLayer, Depends(get_cache)]
