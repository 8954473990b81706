"""Preferences and dashboard aggregation."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.redis_keys import TTL_DASHBOARD, key_dashboard
from studystreak.core.timeutil import local_today
from studystreak.models.focus import FocusSession
from studystreak.models.task import Task
from studystreak.models.user import User, UserPreference
from studystreak.schemas.focus import FocusSessionResponse
from studystreak.schemas.task import TaskResponse
from studystreak.schemas.user import PreferencesUpdate
from studystreak.services import cache
from studystreak.services.analytics import get_daily
from studystreak.services.focus_service import get_active_session
from studystreak.services.gamification import level_progress
from studystreak.services.streak_service import user_effective_streak
from studystreak.services.task_service import task_counts

logger = logging.getLogger(__name__)


async def get_or_create_preferences(db: AsyncSession, user: User) -> UserPreference:
    prefs = (
        await db.execute(select(UserPreference).where(UserPreference.user_id == user.id))
    ).scalar_one_or_none()
    if prefs is None:
        prefs = UserPreference(user_id=user.id)
        db.add(prefs)
        await db.commit()
        await db.refresh(prefs)
    return prefs


def preferences_payload(prefs: UserPreference, user: User) -> dict:
    return {
        "theme": prefs.theme,
        "focus_duration": prefs.focus_duration,
        "short_break_duration": prefs.short_break_duration,
        "long_break_duration": prefs.long_break_duration,
        "long_break_interval": prefs.long_break_interval,
        "daily_goal": prefs.daily_goal,
        "notifications_enabled": prefs.notifications_enabled,
        "sound_enabled": prefs.sound_enabled,
        "reduced_motion": prefs.reduced_motion,
        "ai_personalization": prefs.ai_personalization,
        "timezone": user.timezone,
    }


async def update_preferences(db: AsyncSession, user: User, payload: PreferencesUpdate) -> dict:
    prefs = await get_or_create_preferences(db, user)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    timezone_name = changes.pop("timezone", None)
    if timezone_name:
        user.timezone = timezone_name
    for field, value in changes.items():
        setattr(prefs, field, value)
    await db.commit()
    await db.refresh(prefs)
    await cache.invalidate(key_dashboard(user.id))
    return preferences_payload(prefs, user)


async def _build_dashboard(db: AsyncSession, user: User) -> dict:
    prefs = await get_or_create_preferences(db, user)
    today = local_today(user.timezone)
    daily = await get_daily(db, user.id, today)
    study_minutes = daily.study_minutes if daily else 0

    upcoming = (
        await db.execute(
            select(Task)
            .where(
                Task.user_id == user.id,
                Task.status.in_(("PENDING", "IN_PROGRESS")),
                Task.due_date.is_not(None),
            )
            .order_by(Task.due_date.asc())
            .limit(5)
        )
    ).scalars().all()
    recent = (
        await db.execute(
            select(FocusSession)
            .where(FocusSession.user_id == user.id)
            .order_by(FocusSession.started_at.desc(), FocusSession.id.desc())
            .limit(5)
        )
    ).scalars().all()
    active = await get_active_session(db, user.id)

    return {
        "user_id": user.id,
        "name": user.name,
        "current_streak": user_effective_streak(user),
        "longest_streak": user.longest_streak or 0,
        "total_focus_time": user.total_focus_time or 0,
        "level": level_progress(user.experience or 0),
        "today": {
            "date": today.isoformat(),
            "study_minutes": study_minutes,
            "daily_goal": prefs.daily_goal,
            "percent": round(min(study_minutes / prefs.daily_goal * 100, 100.0), 1) if prefs.daily_goal else 0.0,
            "focus_sessions": daily.focus_sessions if daily else 0,
            "tasks_completed": daily.tasks_completed if daily else 0,
        },
        "task_counts": await task_counts(db, user.id),
        "upcoming_tasks": [TaskResponse.model_validate(t).model_dump(mode="json") for t in upcoming],
        "recent_sessions": [FocusSessionResponse.model_validate(s).model_dump(mode="json") for s in recent],
        "active_session": FocusSessionResponse.model_validate(active).model_dump(mode="json") if active else None,
    }


async def get_dashboard(db: AsyncSession, user: User) -> dict:
    async def _load() -> dict:
        return await _build_dashboard(db, user)

    return await cache.get_or_set(key_dashboard(user.id), TTL_DASHBOARD, _load)
