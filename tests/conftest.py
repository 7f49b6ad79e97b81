"""Shared test fixtures.

Every test gets a fresh in-memory store and cache; nothing talks to a real
Redis server or database file.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from taskforge.cache.layer import CacheLayer
from taskforge.cache.memory import InMemoryCacheBackend
from taskforge.core.config import Settings
from taskforge.database import build_engine, build_sessionmaker, create_db_and_tables
from taskforge.main import create_app
from taskforge.repositories import InMemoryTaskRepository, SQLModelTaskRepository
from taskforge.services.task_service import TaskService


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        persistence_backend="memory",
        database_url="sqlite+aiosqlite://",
        redis_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture()
def memory_backend(clock) -> InMemoryCacheBackend:
    return InMemoryCacheBackend(maxsize=1_000, timer=clock)


@pytest.fixture()
def cache(settings, memory_backend) -> CacheLayer:
    return CacheLayer(settings, backend=memory_backend)


@pytest.fixture()
def repository() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture()
def service(repository, cache, settings) -> TaskService:
    return TaskService(repository, cache, settings)


@pytest_asyncio.fixture()
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def sql_repository(engine):
    async with build_sessionmaker(engine)() as session:
        yield SQLModelTaskRepository(session)


@pytest.fixture()
def client(settings):
    """API client over the in-memory store and fallback cache."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture()
def db_client(settings):
    """API client over an in-memory SQLite database."""
    db_settings = settings.model_copy(update={"persistence_backend": "database"})
    with TestClient(create_app(db_settings)) as test_client:
        yield test_client
