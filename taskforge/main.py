import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskforge.cache.keys import TASK_LIST_PATTERN
from taskforge.cache.layer import CacheLayer
from taskforge.core.config import Settings, get_settings
from taskforge.core.logging import setup_logging
from taskforge.database import build_engine, build_sessionmaker, create_db_and_tables
from taskforge.exceptions import TaskNotFoundError
from taskforge.repositories import InMemoryTaskRepository, SQLModelTaskRepository
from taskforge.routers import health, tasks
from taskforge.seed import seed_demo_tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    app.state.started_at = time.monotonic()

    cache = CacheLayer(settings)
    await cache.init_cache()
    app.state.cache = cache

    engine = None
    app.state.task_store = None
    app.state.session_factory = None
    try:
        if settings.persistence_backend == "memory":
            app.state.task_store = InMemoryTaskRepository()
        else:
            engine = build_engine(settings.database_url)
            await create_db_and_tables(engine)
            app.state.session_factory = build_sessionmaker(engine)

        if settings.seed_demo_data:
            await _seed(app)

        logger.info(
            f"{settings.app_name} started ({settings.persistence_backend} storage)"
        )
        yield
    finally:
        await cache.close()
        if app.state.task_store is not None:
            await app.state.task_store.close()
        if engine is not None:
            await engine.dispose()


async def _seed(app: FastAPI):
    if app.state.task_store is not None:
        created = await seed_demo_tasks(app.state.task_store)
    else:
        async with app.state.session_factory() as session:
            created = await seed_demo_tasks(SQLModelTaskRepository(session))
    if created:
        await app.state.cache.delete_pattern(TASK_LIST_PATTERN)


async def task_not_found_handler(request: Request, exc: TaskNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Task tracking API with a read-through cache",
        swagger_ui_parameters={"displayRequestDuration": True},
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TaskNotFoundError, task_not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(tasks.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        return {
            "message": f"Welcome to {settings.app_name} API",
            "docs": "/docs",
            "version": "1.0.0",
        }

    return app


app = create_app()


def run():
    """Serve the app with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "taskforge.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
