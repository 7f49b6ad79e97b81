from fastapi import APIRouter, Query, status
from typing_extensions import Annotated

from taskforge.dependencies import TaskServiceDep
from taskforge.schemas import (
    DeleteResult,
    PaginatedTasks,
    TaskCreate,
    TaskQuery,
    TaskRead,
    TaskUpdate,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, service: TaskServiceDep):
    """Create a new task"""
    return await service.create(task_data)


@router.get("", response_model=PaginatedTasks)
async def get_tasks(query: Annotated[TaskQuery, Query()], service: TaskServiceDep):
    """List tasks with filtering, sorting and pagination"""
    return await service.find_all(query)


# ids are taken as strings: a non-numeric id is a 404, not a 422
@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: str, service: TaskServiceDep):
    """Get a specific task by ID"""
    return await service.find_one(task_id)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(task_id: str, task_data: TaskUpdate, service: TaskServiceDep):
    return await service.update(task_id, task_data)


@router.put("/{task_id}", response_model=TaskRead)
async def replace_task(task_id: str, task_data: TaskUpdate, service: TaskServiceDep):
    """Same partial semantics as PATCH"""
    return await service.update(task_id, task_data)


@router.delete("/{task_id}", response_model=DeleteResult)
async def delete_task(task_id: str, service: TaskServiceDep):
    """Delete a task"""
    return await service.remove(task_id)
