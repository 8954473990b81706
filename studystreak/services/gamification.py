"""XP, levels and achievements."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.models.achievement import Achievement, UserAchievement
from studystreak.models.focus import FocusSession
from studystreak.models.social import Friendship
from studystreak.models.user import User

logger = logging.getLogger(__name__)

XP_PER_FOCUS_MINUTE = 10
XP_PER_COMPLETED_TASK = 25
XP_PER_LEVEL = 500

# metric codes understood by collect_metrics()
METRIC_COMPLETED_SESSIONS = "completed_sessions"
METRIC_STREAK = "streak"
METRIC_COMPLETED_TASKS = "completed_tasks"
METRIC_FRIENDS = "friends"
METRIC_FOCUS_MINUTES = "focus_minutes"

ACHIEVEMENT_DEFINITIONS = [
    {
        "code": "first_steps",
        "name": "First Steps",
        "description": "Complete your first study session",
        "icon": "🎯",
        "category": "SPECIAL",
        "metric": METRIC_COMPLETED_SESSIONS,
        "requirement": 1,
        "xp_reward": 50,
    },
    {
        "code": "week_warrior",
        "name": "Week Warrior",
        "description": "Maintain a 7-day streak",
        "icon": "🔥",
        "category": "STREAK",
        "metric": METRIC_STREAK,
        "requirement": 7,
        "xp_reward": 200,
    },
    {
        "code": "focus_master",
        "name": "Focus Master",
        "description": "Complete 50 focus sessions",
        "icon": "🧘",
        "category": "STUDY_TIME",
        "metric": METRIC_COMPLETED_SESSIONS,
        "requirement": 50,
        "xp_reward": 500,
    },
    {
        "code": "task_crusher",
        "name": "Task Crusher",
        "description": "Complete 100 tasks",
        "icon": "✅",
        "category": "TASKS",
        "metric": METRIC_COMPLETED_TASKS,
        "requirement": 100,
        "xp_reward": 300,
    },
    {
        "code": "social_butterfly",
        "name": "Social Butterfly",
        "description": "Add 5 study buddies",
        "icon": "🦋",
        "category": "SOCIAL",
        "metric": METRIC_FRIENDS,
        "requirement": 5,
        "xp_reward": 150,
    },
    {
        "code": "marathon_learner",
        "name": "Marathon Learner",
        "description": "Study for 1000 minutes total",
        "icon": "🏃",
        "category": "STUDY_TIME",
        "metric": METRIC_FOCUS_MINUTES,
        "requirement": 1000,
        "xp_reward": 1000,
    },
]


# ==================== XP / LEVELS ====================


def level_for_xp(xp: int) -> int:
    return max(xp, 0) // XP_PER_LEVEL + 1


def level_progress(xp: int) -> dict:
    xp = max(xp, 0)
    into_level = xp % XP_PER_LEVEL
    return {
        "level": level_for_xp(xp),
        "current_xp": xp,
        "xp_into_level": into_level,
        "xp_for_next_level": XP_PER_LEVEL - into_level,
        "percent": round(into_level / XP_PER_LEVEL * 100, 1),
    }


def award_xp(user: User, amount: int) -> int:
    """Add XP and recompute the level. Returns the amount awarded."""
    if amount <= 0:
        return 0
    user.experience = (user.experience or 0) + amount
    new_level = level_for_xp(user.experience)
    if new_level > (user.level or 1):
        logger.info("user %s reached level %d", user.id, new_level)
    user.level = new_level
    return amount


# ==================== ACHIEVEMENTS ====================


async def ensure_achievement_catalogue(db: AsyncSession) -> list[Achievement]:
    """Insert missing catalogue rows (matched by code) and return the full catalogue."""
    result = await db.execute(select(Achievement))
    existing = {a.code: a for a in result.scalars().all()}
    added = False
    for definition in ACHIEVEMENT_DEFINITIONS:
        if definition["code"] not in existing:
            achievement = Achievement(**definition)
            db.add(achievement)
            existing[achievement.code] = achievement
            added = True
    if added:
        await db.flush()
    order = [d["code"] for d in ACHIEVEMENT_DEFINITIONS]
    return sorted(existing.values(), key=lambda a: order.index(a.code) if a.code in order else len(order))


async def count_friends(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Friendship.id)).where(
            Friendship.status == "ACCEPTED",
            or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
        )
    )
    return result.scalar_one()


async def collect_metrics(db: AsyncSession, user: User) -> dict[str, int]:
    sessions = await db.execute(
        select(func.count(FocusSession.id)).where(
            FocusSession.user_id == user.id,
            FocusSession.completed.is_(True),
        )
    )
    return {
        METRIC_COMPLETED_SESSIONS: sessions.scalar_one(),
        METRIC_STREAK: max(user.current_streak or 0, user.longest_streak or 0),
        METRIC_COMPLETED_TASKS: user.completed_tasks or 0,
        METRIC_FRIENDS: await count_friends(db, user.id),
        METRIC_FOCUS_MINUTES: user.total_focus_time or 0,
    }


async def _unlocked_ids(db: AsyncSession, user_id: int) -> dict[int, UserAchievement]:
    result = await db.execute(select(UserAchievement).where(UserAchievement.user_id == user_id))
    return {ua.achievement_id: ua for ua in result.scalars().all()}


async def evaluate_achievements(db: AsyncSession, user: User) -> list[Achievement]:
    """Unlock every achievement whose requirement is now met.

    Awards the achievement XP on the user. The caller commits.
    """
    # metrics are counted in SQL, so pending changes must be visible
    await db.flush()
    catalogue = await ensure_achievement_catalogue(db)
    unlocked = await _unlocked_ids(db, user.id)
    metrics = await collect_metrics(db, user)

    newly_unlocked = []
    for achievement in catalogue:
        if achievement.id in unlocked:
            continue
        if metrics.get(achievement.metric, 0) >= achievement.requirement:
            db.add(UserAchievement(user_id=user.id, achievement_id=achievement.id))
            award_xp(user, achievement.xp_reward)
            newly_unlocked.append(achievement)
            logger.info("user %s unlocked achievement %s", user.id, achievement.code)

    if newly_unlocked:
        await db.flush()
    return newly_unlocked


async def list_achievements(db: AsyncSession, user: User) -> list[dict]:
    catalogue = await ensure_achievement_catalogue(db)
    unlocked = await _unlocked_ids(db, user.id)
    metrics = await collect_metrics(db, user)
    await db.commit()

    items = []
    for achievement in catalogue:
        progress = min(metrics.get(achievement.metric, 0), achievement.requirement)
        record = unlocked.get(achievement.id)
        items.append(
            {
                "code": achievement.code,
                "name": achievement.name,
                "description": achievement.description,
                "icon": achievement.icon,
                "category": achievement.category,
                "requirement": achievement.requirement,
                "xp_reward": achievement.xp_reward,
                "unlocked": record is not None,
                "unlocked_at": record.unlocked_at if record else None,
                "progress": achievement.requirement if record else progress,
                "percent": 100.0 if record else round(progress / achievement.requirement * 100, 1),
            }
        )
    return items


def achievement_payload(achievements: list[Achievement]) -> list[dict]:
    return [
        {"code": a.code, "name": a.name, "icon": a.icon, "xp_reward": a.xp_reward}
        for a in achievements
    ]
