"""Daily study streaks.

A streak counts consecutive study days in the user's own timezone. It is
advanced when a qualifying activity (a completed focus session of at least
one minute) is recorded and zeroed by the nightly expiry job once a whole
day has been missed.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.timeutil import local_date, local_today, utcnow
from studystreak.models.user import User
from studystreak.services.analytics import daily_range, get_or_create_daily

logger = logging.getLogger(__name__)

MIN_QUALIFYING_MINUTES = 1
HISTORY_DAYS = 14


def next_streak(current: int, last_active: date | None, day: date) -> int:
    """Streak value after an activity on `day`."""
    if last_active is None:
        return 1
    if day == last_active:
        return max(current, 1)
    if day == last_active + timedelta(days=1):
        return current + 1
    if day < last_active:
        # late-arriving activity for an earlier day does not rewrite history
        return max(current, 1)
    return 1


def effective_streak(current: int, last_active: date | None, today: date) -> int:
    """Streak as shown today: still alive if the last activity was today or yesterday."""
    if last_active is None:
        return 0
    if last_active >= today - timedelta(days=1):
        return current
    return 0


def user_effective_streak(user: User) -> int:
    return effective_streak(user.current_streak or 0, user.last_active_date, local_today(user.timezone))


async def record_activity(db: AsyncSession, user: User, day: date) -> int:
    """Advance the user's streak for an activity on `day` and mark the analytics row."""
    current = user.current_streak or 0
    updated = next_streak(current, user.last_active_date, day)
    if updated != current:
        logger.info("streak user=%s %d -> %d (day=%s)", user.id, current, updated, day)
    user.current_streak = updated
    user.longest_streak = max(user.longest_streak or 0, updated)
    if user.last_active_date is None or day > user.last_active_date:
        user.last_active_date = day

    daily = await get_or_create_daily(db, user.id, day)
    daily.streak_day = True
    return updated


async def streak_summary(db: AsyncSession, user: User) -> dict:
    today = local_today(user.timezone)
    rows = await daily_range(db, user.id, today, HISTORY_DAYS)
    history = []
    for offset in range(HISTORY_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        row = rows.get(day)
        history.append(
            {
                "date": day,
                "active": bool(row and row.streak_day),
                "study_minutes": row.study_minutes if row else 0,
            }
        )
    return {
        "current_streak": effective_streak(user.current_streak or 0, user.last_active_date, today),
        "longest_streak": user.longest_streak or 0,
        "last_active_date": user.last_active_date,
        "history": history,
    }


async def expire_streaks(db: AsyncSession) -> int:
    """Zero the stored streak of every user who missed a whole local day.

    Returns: number of users reset
    """
    now = utcnow()
    result = await db.execute(select(User).where(User.current_streak > 0))
    reset = 0
    for user in result.scalars().all():
        today = local_date(now, user.timezone)
        if effective_streak(user.current_streak, user.last_active_date, today) == 0:
            user.current_streak = 0
            reset += 1
    await db.commit()
    logger.info("streak expiry: %d users reset", reset)
    return reset
