import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from taskforge.dependencies import CacheDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, cache: CacheDep):
    settings = request.app.state.settings
    checks = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - request.app.state.started_at,
        "storage": "in-memory" if settings.persistence_backend == "memory" else "database",
        "cache": cache.get_stats(),
        "redis": "unknown",
    }

    if await cache.ping():
        checks["redis"] = "connected" if cache.backend.name == "redis" else "fallback"
    else:
        checks["redis"] = "disconnected"
        checks["status"] = "error"

    return checks
