"""Admin performance report."""

import logging
import platform
import resource
import sys
import time

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import require_admin
from studystreak.core.database import get_db
from studystreak.models.focus import FocusSession
from studystreak.models.task import Task
from studystreak.models.user import User
from studystreak.services.ai_agents import analyze_performance
from studystreak.services.redis_cache import get_redis_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

PROCESS_STARTED = time.time()

HIGH_MEMORY_MB = 512
SLOW_DB_MS = 100


def _peak_rss_mb() -> float:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(peak / divisor, 1)


def build_recommendations(memory_mb: float, db_latency_ms: float | None, cache_ok: bool) -> list[str]:
    tips = []
    if memory_mb > HIGH_MEMORY_MB:
        tips.append("High memory usage detected. Consider profiling for leaks or adding workers.")
    if db_latency_ms is None:
        tips.append("Database is unreachable. Check the connection settings.")
    elif db_latency_ms > SLOW_DB_MS:
        tips.append("Database latency is high. Review slow queries and indexes.")
    if not cache_ok:
        tips.append("Redis cache is unavailable. Responses are served without caching.")
    return tips


@router.get("/performance")
async def performance(
    analyze: bool = Query(False),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    db_latency_ms = None
    counts = {}
    try:
        started = time.perf_counter()
        await db.execute(text("SELECT 1"))
        db_latency_ms = round((time.perf_counter() - started) * 1000, 2)
        for name, column in (("users", User.id), ("tasks", Task.id), ("focus_sessions", FocusSession.id)):
            counts[name] = (await db.execute(select(func.count(column)))).scalar_one()
    except Exception as e:
        logger.warning("performance report: database check failed: %s", e)

    cache = await get_redis_cache()
    started = time.perf_counter()
    cache_ok = await cache.ping()
    cache_latency_ms = round((time.perf_counter() - started) * 1000, 2) if cache_ok else None

    memory_mb = _peak_rss_mb()
    report = {
        "uptime_seconds": round(time.time() - PROCESS_STARTED),
        "python_version": platform.python_version(),
        "memory": {"peak_rss_mb": memory_mb},
        "database": {"latency_ms": db_latency_ms, "counts": counts},
        "cache": {"available": cache_ok, "latency_ms": cache_latency_ms},
        "recommendations": build_recommendations(memory_mb, db_latency_ms, cache_ok),
    }
    if analyze:
        report["analysis"] = await analyze_performance(report)
    logger.info("performance report requested by admin %s", admin.id)
    return report
