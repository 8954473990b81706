"""Task CRUD plus completion side effects (XP, analytics, challenges, achievements)."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.redis_keys import (
    TTL_TASKS_LIST,
    key_dashboard,
    key_tasks_list,
    pattern_focus_list,
    pattern_tasks_list,
)
from studystreak.core.security import sanitize_input
from studystreak.core.timeutil import local_today, to_naive_utc, utcnow
from studystreak.models.focus import FocusSession
from studystreak.models.task import Task
from studystreak.models.user import User
from studystreak.schemas.common import Pagination
from studystreak.schemas.task import TaskCreate, TaskFilter, TaskResponse, TaskUpdate
from studystreak.services import cache
from studystreak.services.analytics import get_or_create_daily
from studystreak.services.challenge_service import advance_challenges
from studystreak.services.gamification import (
    XP_PER_COMPLETED_TASK,
    achievement_payload,
    award_xp,
    evaluate_achievements,
)

logger = logging.getLogger(__name__)

_PRIORITY_RANK = case(
    {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "URGENT": 4},
    value=Task.priority,
    else_=0,
)


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _sort_column(sort_by: str):
    if sort_by == "priority":
        return _PRIORITY_RANK
    return getattr(Task, sort_by)


async def invalidate_user_task_caches(user_id: int) -> None:
    await cache.invalidate_pattern(pattern_tasks_list(user_id))
    await cache.invalidate(key_dashboard(user_id))


async def get_owned_task(db: AsyncSession, task_id: int, user_id: int) -> Task:
    task = await db.get(Task, task_id)
    if task is None or task.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


async def _query_tasks(db: AsyncSession, user_id: int, filters: TaskFilter) -> dict:
    conditions = [Task.user_id == user_id]
    if filters.status:
        conditions.append(Task.status == filters.status)
    if filters.priority:
        conditions.append(Task.priority == filters.priority)
    if filters.search:
        pattern = f"%{escape_like(filters.search.lower())}%"
        conditions.append(
            or_(
                func.lower(Task.title).like(pattern, escape="\\"),
                func.lower(func.coalesce(Task.description, "")).like(pattern, escape="\\"),
            )
        )

    tags = filters.tag_list
    query = select(Task).where(*conditions)
    column = _sort_column(filters.sort_by)
    order = column.asc() if filters.sort_order == "asc" else column.desc()
    query = query.order_by(order, Task.id.desc())

    if tags:
        # JSON arrays are matched in Python to stay portable across backends
        rows = (await db.execute(query)).scalars().all()
        matching = [t for t in rows if set(t.tags or []) & set(tags)]
        total = len(matching)
        page_items = matching[(filters.page - 1) * filters.limit : filters.page * filters.limit]
    else:
        total = (
            await db.execute(select(func.count(Task.id)).where(*conditions))
        ).scalar_one()
        page_items = (
            await db.execute(query.offset((filters.page - 1) * filters.limit).limit(filters.limit))
        ).scalars().all()

    return {
        "items": [TaskResponse.model_validate(t).model_dump(mode="json") for t in page_items],
        "pagination": Pagination.build(filters.page, filters.limit, total).model_dump(),
    }


async def list_tasks(db: AsyncSession, user: User, filters: TaskFilter) -> tuple[dict, bool]:
    """Cached task list. Returns (payload, cache_hit)."""
    key = key_tasks_list(user.id, filters.model_dump())
    hit, value = await cache.get_cached(key)
    if hit and value is not None:
        return value, True

    payload = await _query_tasks(db, user.id, filters)
    await cache.store(key, payload, TTL_TASKS_LIST)
    return payload, False


async def create_task(db: AsyncSession, user: User, payload: TaskCreate) -> Task:
    task = Task(
        user_id=user.id,
        title=sanitize_input(payload.title),
        description=sanitize_input(payload.description),
        priority=payload.priority,
        due_date=to_naive_utc(payload.due_date),
        estimated_time=payload.estimated_time,
        tags=[sanitize_input(t) for t in payload.tags or []],
    )
    db.add(task)
    user.total_tasks = (user.total_tasks or 0) + 1
    await db.commit()
    await db.refresh(task)
    await invalidate_user_task_caches(user.id)
    return task


async def _on_completed(db: AsyncSession, user: User) -> list:
    user.completed_tasks = (user.completed_tasks or 0) + 1
    award_xp(user, XP_PER_COMPLETED_TASK)
    daily = await get_or_create_daily(db, user.id, local_today(user.timezone))
    daily.tasks_completed = (daily.tasks_completed or 0) + 1
    await advance_challenges(db, user.id, "TASK_COMPLETION", 1)
    return await evaluate_achievements(db, user)


async def update_task(db: AsyncSession, user: User, task_id: int, payload: TaskUpdate) -> tuple[Task, list[dict]]:
    task = await get_owned_task(db, task_id, user.id)
    changes = payload.model_dump(exclude_unset=True)

    for field in ("title", "description"):
        if field in changes:
            changes[field] = sanitize_input(changes[field])
    if "title" in changes and not changes["title"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title cannot be empty")
    if "due_date" in changes:
        changes["due_date"] = to_naive_utc(changes["due_date"])
    if "tags" in changes:
        changes["tags"] = [sanitize_input(t) for t in changes["tags"] or []]

    previous_status = task.status
    new_status = changes.pop("status", None)
    for field, value in changes.items():
        setattr(task, field, value)

    unlocked = []
    if new_status and new_status != previous_status:
        task.status = new_status
        if new_status == "COMPLETED":
            task.completed_at = utcnow()
            unlocked = await _on_completed(db, user)
        elif previous_status == "COMPLETED":
            task.completed_at = None
            user.completed_tasks = max(0, (user.completed_tasks or 0) - 1)

    await db.commit()
    await db.refresh(task)
    await invalidate_user_task_caches(user.id)
    return task, achievement_payload(unlocked)


async def delete_task(db: AsyncSession, user: User, task_id: int) -> None:
    task = await get_owned_task(db, task_id, user.id)
    await db.execute(
        update(FocusSession).where(FocusSession.task_id == task.id).values(task_id=None)
    )
    await db.delete(task)
    # completed_tasks is a lifetime counter and keeps deleted completions
    user.total_tasks = max(0, (user.total_tasks or 0) - 1)
    await db.commit()
    await invalidate_user_task_caches(user.id)
    # detached sessions show up in the cached focus history
    await cache.invalidate_pattern(pattern_focus_list(user.id))
    logger.info("task %s deleted by user %s", task_id, user.id)


async def task_counts(db: AsyncSession, user_id: int) -> dict[str, int]:
    rows = await db.execute(
        select(Task.status, func.count(Task.id)).where(Task.user_id == user_id).group_by(Task.status)
    )
    counts = {s: 0 for s in ("PENDING", "IN_PROGRESS", "COMPLETED", "ARCHIVED")}
    counts.update({row[0]: row[1] for row in rows.all()})
    return counts
