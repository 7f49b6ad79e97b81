"""Seed demo tasks into an empty store: `python -m taskforge.seed`."""

import asyncio
import logging
from datetime import timedelta

from taskforge.core.config import get_settings
from taskforge.core.logging import setup_logging
from taskforge.database import build_engine, build_sessionmaker, create_db_and_tables
from taskforge.models import TaskStatus, get_utc_now
from taskforge.repositories import SQLModelTaskRepository, TaskFilter, TaskRepository
from taskforge.schemas import TaskCreate

logger = logging.getLogger(__name__)


def demo_tasks() -> list[TaskCreate]:
    return [
        TaskCreate(
            title="Plan project structure",
            description="Define modules and shared conventions",
            status=TaskStatus.todo,
        ),
        TaskCreate(
            title="Implement Tasks API",
            description="CRUD with SQLModel and FastAPI",
            status=TaskStatus.in_progress,
        ),
        TaskCreate(
            title="Wire up Frontend",
            description="Single-page UI over the Tasks API",
            status=TaskStatus.done,
            due_date=get_utc_now() + timedelta(days=3),
        ),
    ]


async def seed_demo_tasks(repository: TaskRepository) -> int:
    """Create the demo tasks unless any task exists. Returns how many were created."""
    existing = await repository.count(TaskFilter())
    if existing > 0:
        logger.info(f"Seed skipped: {existing} tasks already exist.")
        return 0

    tasks = demo_tasks()
    for task in tasks:
        await repository.create(task)
    logger.info("Seed completed: created demo tasks.")
    return len(tasks)


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    engine = build_engine(settings.database_url)
    try:
        await create_db_and_tables(engine)
        async with build_sessionmaker(engine)() as session:
            await seed_demo_tasks(SQLModelTaskRepository(session))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
