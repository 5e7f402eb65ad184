"""Liveness, readiness and version probes."""

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.database import get_session
from mentora.redis_client import get_redis

router = APIRouter()

SERVICE = "mentora-api"


async def _probe(check: Callable[[], Awaitable[object]]) -> str:
    try:
        await check()
    except Exception as exc:  # noqa: BLE001
        return f"error: {exc}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy", "service": SERVICE}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe.

    The database is required. Redis only backs rate limiting, so without it
    the API still serves traffic but reports `degraded`.
    """
    checks = {
        "database": await _probe(lambda: db.execute(text("SELECT 1"))),
        "redis": await _probe(lambda: get_redis().ping()),
    }
    if checks["database"] != "ok":
        status = "unavailable"
    elif checks["redis"] != "ok":
        status = "degraded"
    else:
        status = "ready"
    return {"status": status, "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": SERVICE,
        "version": settings.app_version,
        "environment": settings.environment,
    }
