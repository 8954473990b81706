"""Service health: combined status plus liveness and readiness checks."""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.config import settings
from studystreak.core.database import get_db
from studystreak.services.redis_cache import get_redis_cache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database(db: AsyncSession) -> tuple[bool, float, str | None]:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:  # any driver failure counts as down
        logger.warning("Database check failed: %s", e)
        return False, 0.0, str(e)
    return True, round((time.perf_counter() - started) * 1000, 2), None


async def _check_redis() -> tuple[bool, float, str | None]:
    started = time.perf_counter()
    cache = await get_redis_cache()
    if not await cache.ping():
        return False, 0.0, "Redis unavailable"
    return True, round((time.perf_counter() - started) * 1000, 2), None


@router.get("/health")
async def health_check(response: Response, db: AsyncSession = Depends(get_db)) -> dict:
    db_ok, db_ms, db_error = await _check_database(db)
    redis_ok, redis_ms, redis_error = await _check_redis()

    healthy = db_ok and redis_ok
    if not healthy:
        response.status_code = 503

    label = lambda ok: "healthy" if ok else "unhealthy"  # noqa: E731
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.APP_VERSION,
        "services": {"api": "healthy", "database": label(db_ok), "redis": label(redis_ok)},
        "latency_ms": {"database": db_ms, "redis": redis_ms},
        "errors": {name: err for name, err in (("database", db_error), ("redis", redis_error)) if err},
    }


@router.get("/health/live")
async def liveness() -> dict:
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(response: Response, db: AsyncSession = Depends(get_db)) -> dict:
    """Ready once both the database and Redis answer."""
    db_ok, _, _ = await _check_database(db)
    redis_ok, _, _ = await _check_redis()
    checks = {
        "database": "ready" if db_ok else "not_ready",
        "redis": "ready" if redis_ok else "not_ready",
    }
    if not (db_ok and redis_ok):
        response.status_code = 503
        return {"status": "not_ready", "checks": checks}
    return {"status": "ready", "checks": checks}
