from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func, nulls_last, or_
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskforge.exceptions import TaskNotFoundError
from taskforge.models import Task, TaskStatus, get_utc_now
from taskforge.schemas import TaskCreate, TaskRead

SORTABLE_FIELDS = ("id", "title", "status", "due_date", "created_at", "updated_at")


@dataclass(frozen=True)
class TaskFilter:
    """
    Predicate for listing tasks.

    due_from / due_before bound due_date as [due_from, due_before). `search`
    matches title or description; `title` matches title alone and is ignored
    when `search` is given. Substring matches are case-insensitive.
    """

    status: Optional[TaskStatus] = None
    due_from: Optional[datetime] = None
    due_before: Optional[datetime] = None
    search: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class TaskOrder:
    field: str = "due_date"
    direction: str = "asc"

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


class TaskRepository(ABC):
    """Persistence contract for tasks. Returns detached TaskRead snapshots."""

    @abstractmethod
    async def create(self, data: TaskCreate) -> TaskRead:
        """Insert a task and return it with its assigned id."""

    @abstractmethod
    async def find_many(
        self, task_filter: TaskFilter, skip: int, take: int, order: TaskOrder
    ) -> List[TaskRead]:
        """Return one page of matching tasks."""

    @abstractmethod
    async def count(self, task_filter: TaskFilter) -> int:
        """Count all matching tasks, ignoring pagination."""

    @abstractmethod
    async def find_unique(self, task_id: int) -> Optional[TaskRead]:
        """Return a task by id, or None."""

    @abstractmethod
    async def update(self, task_id: int, data: dict[str, Any]) -> TaskRead:
        """Apply the given fields and refresh updated_at. Raises TaskNotFoundError."""

    @abstractmethod
    async def delete(self, task_id: int) -> None:
        """Delete a task. Raises TaskNotFoundError."""

    async def close(self) -> None:
        """Release resources held by the repository."""


class SQLModelTaskRepository(TaskRepository):
    """Repository over an async SQLModel session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _where(self, query, task_filter: TaskFilter):
        if task_filter.status is not None:
            query = query.where(Task.status == task_filter.status)
        if task_filter.due_from is not None:
            query = query.where(col(Task.due_date) >= task_filter.due_from)
        if task_filter.due_before is not None:
            query = query.where(col(Task.due_date) < task_filter.due_before)

        # autoescape keeps % and _ literal
        if task_filter.search:
            query = query.where(
                or_(
                    col(Task.title).icontains(task_filter.search, autoescape=True),
                    col(Task.description).icontains(
                        task_filter.search, autoescape=True
                    ),
                )
            )
        elif task_filter.title:
            query = query.where(
                col(Task.title).icontains(task_filter.title, autoescape=True)
            )
        return query

    async def create(self, data: TaskCreate) -> TaskRead:
        task = Task.model_validate(data.model_dump())
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)
        return TaskRead.model_validate(task)

    async def find_many(
        self, task_filter: TaskFilter, skip: int, take: int, order: TaskOrder
    ) -> List[TaskRead]:
        column = col(getattr(Task, order.field))
        ordering = column.desc() if order.descending else column.asc()
        query = (
            self._where(select(Task), task_filter)
            .order_by(nulls_last(ordering), col(Task.id).asc())
            .offset(skip)
            .limit(take)
        )
        result = await self.session.exec(query)
        return [TaskRead.model_validate(task) for task in result.all()]

    async def count(self, task_filter: TaskFilter) -> int:
        query = self._where(select(func.count()).select_from(Task), task_filter)
        result = await self.session.exec(query)
        return result.one()

    async def find_unique(self, task_id: int) -> Optional[TaskRead]:
        task = await self.session.get(Task, task_id)
        return TaskRead.model_validate(task) if task else None

    async def update(self, task_id: int, data: dict[str, Any]) -> TaskRead:
        task = await self.session.get(Task, task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        task.sqlmodel_update(data)
        task.updated_at = get_utc_now()
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)
        return TaskRead.model_validate(task)

    async def delete(self, task_id: int) -> None:
        task = await self.session.get(Task, task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        await self.session.delete(task)
        await self.session.commit()

    async def close(self) -> None:
        await self.session.close()


class InMemoryTaskRepository(TaskRepository):
    """
    Process-local repository. Ids come from a counter starting at 1 and are
    never reused. Nothing survives the instance.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._items: dict[int, TaskRead] = {}
        self._next_id = 1

    def _matches(self, task: TaskRead, task_filter: TaskFilter) -> bool:
        if task_filter.status is not None and task.status != task_filter.status:
            return False
        if task_filter.due_from is not None or task_filter.due_before is not None:
            if task.due_date is None:
                return False
            if task_filter.due_from is not None and task.due_date < task_filter.due_from:
                return False
            if (
                task_filter.due_before is not None
                and task.due_date >= task_filter.due_before
            ):
                return False

        if task_filter.search:
            needle = task_filter.search.lower()
            return needle in task.title.lower() or needle in (
                task.description or ""
            ).lower()
        if task_filter.title:
            return task_filter.title.lower() in task.title.lower()
        return True

    def _filtered(self, task_filter: TaskFilter) -> List[TaskRead]:
        return [t for t in self._items.values() if self._matches(t, task_filter)]

    async def create(self, data: TaskCreate) -> TaskRead:
        async with self._lock:
            now = get_utc_now()
            task = TaskRead(
                id=self._next_id,
                created_at=now,
                updated_at=now,
                **data.model_dump(),
            )
            self._next_id += 1
            self._items[task.id] = task
            return task.model_copy()

    async def find_many(
        self, task_filter: TaskFilter, skip: int, take: int, order: TaskOrder
    ) -> List[TaskRead]:
        items = sorted(self._filtered(task_filter), key=lambda t: t.id)

        # Nulls last in either direction, like the SQL ordering
        present = [t for t in items if getattr(t, order.field) is not None]
        missing = [t for t in items if getattr(t, order.field) is None]
        present.sort(key=lambda t: getattr(t, order.field), reverse=order.descending)

        page = (present + missing)[skip : skip + take]
        return [t.model_copy() for t in page]

    async def count(self, task_filter: TaskFilter) -> int:
        return len(self._filtered(task_filter))

    async def find_unique(self, task_id: int) -> Optional[TaskRead]:
        task = self._items.get(task_id)
        return task.model_copy() if task else None

    async def update(self, task_id: int, data: dict[str, Any]) -> TaskRead:
        async with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                raise TaskNotFoundError(task_id)
            updated = existing.model_copy(
                update={**data, "updated_at": get_utc_now()}
            )
            self._items[task_id] = updated
            return updated.model_copy()

    async def delete(self, task_id: int) -> None:
        async with self._lock:
            if self._items.pop(task_id, None) is None:
                raise TaskNotFoundError(task_id)
