"""Focus sessions: start/complete/cancel and the reward pipeline."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.redis_keys import (
    TTL_FOCUS_LIST,
    key_dashboard,
    key_focus_list,
    pattern_focus_list,
    pattern_tasks_list,
)
from studystreak.core.timeutil import local_date, local_today, to_naive_utc, utcnow
from studystreak.models.focus import FocusSession
from studystreak.models.task import Task
from studystreak.models.user import User, UserPreference
from studystreak.schemas.common import Pagination
from studystreak.schemas.focus import FocusSessionResponse, FocusSessionStart, FocusSessionUpdate
from studystreak.services import cache
from studystreak.services.analytics import get_or_create_daily
from studystreak.services.challenge_service import advance_challenges, sync_streak_challenges
from studystreak.services.focus_timer import TimerSettings, plan_next_interval
from studystreak.services.gamification import (
    XP_PER_FOCUS_MINUTE,
    achievement_payload,
    award_xp,
    evaluate_achievements,
)
from studystreak.services.streak_service import MIN_QUALIFYING_MINUTES, record_activity

logger = logging.getLogger(__name__)


def actual_minutes(started_at: datetime, ended_at: datetime, planned_duration: int) -> int:
    """Elapsed minutes rounded to the nearest minute, capped at twice the plan."""
    elapsed = max((ended_at - started_at).total_seconds(), 0)
    return min(round(elapsed / 60), planned_duration * 2)


async def get_preferences(db: AsyncSession, user_id: int) -> UserPreference | None:
    result = await db.execute(select(UserPreference).where(UserPreference.user_id == user_id))
    return result.scalar_one_or_none()


async def invalidate_user_focus_caches(user_id: int) -> None:
    await cache.invalidate_pattern(pattern_focus_list(user_id))
    await cache.invalidate(key_dashboard(user_id))


async def get_active_session(db: AsyncSession, user_id: int) -> FocusSession | None:
    result = await db.execute(
        select(FocusSession)
        .where(FocusSession.user_id == user_id, FocusSession.ended_at.is_(None))
        .order_by(FocusSession.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _session_stats(db: AsyncSession, user_id: int) -> dict:
    row = (
        await db.execute(
            select(
                func.count(FocusSession.id),
                func.coalesce(func.sum(FocusSession.duration), 0),
                func.avg(FocusSession.duration),
                func.coalesce(func.sum(FocusSession.pause_count), 0),
            ).where(FocusSession.user_id == user_id)
        )
    ).one()
    return {
        "total_sessions": row[0],
        "total_minutes": int(row[1]),
        "avg_duration": round(row[2] or 0),
        "total_pauses": int(row[3]),
    }


async def list_sessions(
    db: AsyncSession,
    user: User,
    page: int,
    limit: int,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    start_date = to_naive_utc(start_date)
    end_date = to_naive_utc(end_date)
    key = key_focus_list(user.id, {"page": page, "limit": limit, "start": start_date, "end": end_date})

    async def _load() -> dict:
        conditions = [FocusSession.user_id == user.id]
        if start_date:
            conditions.append(FocusSession.started_at >= start_date)
        if end_date:
            conditions.append(FocusSession.started_at <= end_date)

        total = (await db.execute(select(func.count(FocusSession.id)).where(*conditions))).scalar_one()
        sessions = (
            await db.execute(
                select(FocusSession)
                .where(*conditions)
                .order_by(FocusSession.started_at.desc(), FocusSession.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()
        return {
            "sessions": [FocusSessionResponse.model_validate(s).model_dump(mode="json") for s in sessions],
            "pagination": Pagination.build(page, limit, total).model_dump(),
            "stats": await _session_stats(db, user.id),
        }

    return await cache.get_or_set(key, TTL_FOCUS_LIST, _load)


def _already_active(active: FocusSession | None) -> HTTPException:
    detail: dict = {"message": "You already have an active focus session"}
    if active is not None:
        detail["active_session"] = FocusSessionResponse.model_validate(active).model_dump(mode="json")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def start_session(db: AsyncSession, user: User, payload: FocusSessionStart) -> FocusSession:
    active = await get_active_session(db, user.id)
    if active is not None:
        raise _already_active(active)

    if payload.task_id is not None:
        task = await db.get(Task, payload.task_id)
        if task is None or task.user_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    planned = payload.duration
    if planned is None:
        prefs = await get_preferences(db, user.id)
        planned = prefs.focus_duration if prefs else TimerSettings().focus

    session = FocusSession(
        user_id=user.id,
        task_id=payload.task_id,
        type=payload.type,
        planned_duration=planned,
        duration=0,
        started_at=utcnow(),
        completed=False,
        pause_count=0,
        notes=payload.notes,
    )
    user_id = user.id
    db.add(session)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent start won the one-active-session index
        await db.rollback()
        raise _already_active(await get_active_session(db, user_id))
    await db.refresh(session)
    await invalidate_user_focus_caches(user_id)
    logger.info("focus session started: user=%s session=%s", user_id, session.id)
    return session


async def _reward(db: AsyncSession, user: User, session: FocusSession) -> dict:
    """Apply the completion side effects for a session that produced focused minutes."""
    minutes = session.duration
    user.total_focus_time = (user.total_focus_time or 0) + minutes
    xp = award_xp(user, minutes * XP_PER_FOCUS_MINUTE)

    if session.task_id is not None:
        task = await db.get(Task, session.task_id)
        if task is not None:
            task.total_focus_time = (task.total_focus_time or 0) + minutes

    day = local_date(session.ended_at, user.timezone)
    daily = await get_or_create_daily(db, user.id, day)
    daily.study_minutes = (daily.study_minutes or 0) + minutes
    daily.focus_sessions = (daily.focus_sessions or 0) + 1

    streak = user.current_streak or 0
    if minutes >= MIN_QUALIFYING_MINUTES:
        streak = await record_activity(db, user, day)

    await advance_challenges(db, user.id, "STUDY_TIME", minutes)
    await sync_streak_challenges(db, user.id, streak)

    experience_before = user.experience
    unlocked = await evaluate_achievements(db, user)
    xp += user.experience - experience_before
    return {"xp_gained": xp, "current_streak": streak, "unlocked_achievements": achievement_payload(unlocked)}


async def update_session(db: AsyncSession, user: User, session_id: int, payload: FocusSessionUpdate) -> dict:
    session = await db.get(FocusSession, session_id)
    if session is None or session.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    if payload.notes is not None:
        session.notes = payload.notes
    if payload.pause_count is not None:
        session.pause_count = payload.pause_count

    result = {"xp_gained": 0, "current_streak": None, "unlocked_achievements": []}

    if payload.action in ("complete", "cancel"):
        if session.ended_at is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session already ended")

        now = utcnow()
        session.ended_at = now
        if payload.action == "complete":
            session.completed = True
            session.duration = actual_minutes(session.started_at, now, session.planned_duration)
            if session.duration > 0:
                result = await _reward(db, user, session)
        else:
            session.completed = False
            session.duration = 0

    await db.commit()
    await db.refresh(session)
    await invalidate_user_focus_caches(user.id)
    if session.task_id is not None and payload.action == "complete":
        await cache.invalidate_pattern(pattern_tasks_list(user.id))

    logger.info(
        "focus session %s: user=%s session=%s duration=%s",
        payload.action, user.id, session.id, session.duration,
    )
    result["session"] = FocusSessionResponse.model_validate(session)
    return result


async def timer_plan(db: AsyncSession, user: User) -> dict:
    prefs = await get_preferences(db, user.id)
    settings = TimerSettings.from_preferences(prefs)

    today = local_today(user.timezone)
    # pull a slightly wider UTC window and filter on the local date
    since = utcnow() - timedelta(days=2)
    rows = (
        await db.execute(
            select(FocusSession).where(
                FocusSession.user_id == user.id,
                FocusSession.completed.is_(True),
                FocusSession.ended_at >= since,
            ).order_by(FocusSession.ended_at.desc())
        )
    ).scalars().all()
    today_sessions = [s for s in rows if local_date(s.ended_at, user.timezone) == today]

    completed_today = len(today_sessions)
    if today_sessions and await get_active_session(db, user.id) is None:
        # the break after the last session is still running
        plan = plan_next_interval(settings, completed_today, on_break=True)
        if utcnow() - today_sessions[0].ended_at < timedelta(minutes=plan["duration_minutes"]):
            return plan
    return plan_next_interval(settings, completed_today)
