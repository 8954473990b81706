"""Per-day activity rows (user_analytics)."""

from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.models.focus import UserAnalytics


async def get_or_create_daily(db: AsyncSession, user_id: int, day: date) -> UserAnalytics:
    result = await db.execute(
        select(UserAnalytics).where(UserAnalytics.user_id == user_id, UserAnalytics.day == day)
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = UserAnalytics(
            user_id=user_id,
            day=day,
            study_minutes=0,
            tasks_completed=0,
            focus_sessions=0,
            streak_day=False,
        )
        db.add(row)
        await db.flush()
    return row


async def get_daily(db: AsyncSession, user_id: int, day: date) -> UserAnalytics | None:
    result = await db.execute(
        select(UserAnalytics).where(UserAnalytics.user_id == user_id, UserAnalytics.day == day)
    )
    return result.scalar_one_or_none()


async def daily_range(db: AsyncSession, user_id: int, end: date, days: int) -> dict[date, UserAnalytics]:
    """Rows for the `days` local days ending at `end`, keyed by date."""
    start = end - timedelta(days=days - 1)
    result = await db.execute(
        select(UserAnalytics).where(
            UserAnalytics.user_id == user_id,
            UserAnalytics.day >= start,
            UserAnalytics.day <= end,
        )
    )
    return {row.day: row for row in result.scalars().all()}
