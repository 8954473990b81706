"""Nightly streak expiry job (00:05 UTC)."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from studystreak.core.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def run_streak_expiry() -> int:
    """Reset streaks of users who missed a whole day."""
    from studystreak.services.streak_service import expire_streaks

    logger.info("=== streak expiry start ===")
    try:
        async with AsyncSessionLocal() as session:
            reset = await expire_streaks(session)
    except Exception:
        logger.exception("streak expiry failed")
        return 0
    logger.info("=== streak expiry done (%d reset) ===", reset)
    return reset


def start_scheduler():
    """Start the scheduler once."""
    global _scheduler
    if _scheduler is not None:
        return

    _scheduler = AsyncIOScheduler(timezone="UTC")
    _scheduler.add_job(
        run_streak_expiry,
        trigger=CronTrigger(hour=0, minute=5, timezone="UTC"),
        id="streak_expiry",
        name="Nightly streak expiry (00:05 UTC)",
        misfire_grace_time=3600,
        replace_existing=True,
    )
    _scheduler.start()
    logger.info("scheduler started: streak expiry at 00:05 UTC")


def stop_scheduler():
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("scheduler stopped")
