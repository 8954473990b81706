"""Friend requests, friend list and presence."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.redis_keys import key_presence
from studystreak.core.timeutil import utcnow
from studystreak.models.focus import FocusSession
from studystreak.models.social import Friendship
from studystreak.models.user import User, UserPreference
from studystreak.services import get_redis_cache
from studystreak.services.gamification import evaluate_achievements
from studystreak.services.streak_service import user_effective_streak

logger = logging.getLogger(__name__)

DEFAULT_BREAK_MINUTES = 15


def _pair_clause(a: int, b: int):
    return or_(
        and_(Friendship.user_id == a, Friendship.friend_id == b),
        and_(Friendship.user_id == b, Friendship.friend_id == a),
    )


# ==================== PRESENCE ====================


async def presence_for(db: AsyncSession, user: User) -> str:
    """studying > break > online > offline."""
    latest = (
        await db.execute(
            select(FocusSession)
            .where(FocusSession.user_id == user.id)
            .order_by(FocusSession.started_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if latest is not None:
        if latest.ended_at is None:
            return "studying"
        prefs = (
            await db.execute(select(UserPreference).where(UserPreference.user_id == user.id))
        ).scalar_one_or_none()
        break_minutes = prefs.long_break_duration if prefs else DEFAULT_BREAK_MINUTES
        if utcnow() - latest.ended_at <= timedelta(minutes=break_minutes):
            return "break"

    cache = await get_redis_cache()
    if await cache.exists(key_presence(user.id)):
        return "online"
    return "offline"


# ==================== FRIENDS ====================


async def list_friends(db: AsyncSession, user: User) -> dict:
    rows = (
        await db.execute(
            select(Friendship).where(
                Friendship.status == "ACCEPTED",
                or_(Friendship.user_id == user.id, Friendship.friend_id == user.id),
            )
        )
    ).scalars().all()

    friends = []
    for friendship in rows:
        other_id = friendship.friend_id if friendship.user_id == user.id else friendship.user_id
        other = await db.get(User, other_id)
        if other is None:
            continue
        friends.append(
            {
                "id": other.id,
                "name": other.name,
                "avatar": other.avatar,
                "current_streak": user_effective_streak(other),
                "level": other.level,
                "status": await presence_for(db, other),
                "friends_since": friendship.responded_at or friendship.created_at,
            }
        )

    order = {"studying": 0, "break": 1, "online": 2, "offline": 3}
    friends.sort(key=lambda f: (order[f["status"]], f["name"].lower()))
    return {
        "friends": friends,
        "online_count": sum(1 for f in friends if f["status"] != "offline"),
    }


async def remove_friend(db: AsyncSession, user: User, friend_id: int) -> None:
    friendship = (
        await db.execute(
            select(Friendship).where(_pair_clause(user.id, friend_id), Friendship.status == "ACCEPTED")
        )
    ).scalar_one_or_none()
    if friendship is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friend not found")
    await db.delete(friendship)
    await db.commit()
    logger.info("friendship removed: %s <-> %s", user.id, friend_id)


# ==================== REQUESTS ====================


def _request_payload(friendship: Friendship, requester: User) -> dict:
    return {
        "id": friendship.id,
        "from_user_id": friendship.user_id,
        "from_name": requester.name,
        "to_user_id": friendship.friend_id,
        "status": friendship.status,
        "created_at": friendship.created_at,
    }


async def incoming_requests(db: AsyncSession, user: User) -> list[dict]:
    rows = (
        await db.execute(
            select(Friendship, User)
            .join(User, User.id == Friendship.user_id)
            .where(Friendship.friend_id == user.id, Friendship.status == "PENDING")
            .order_by(Friendship.created_at.desc())
        )
    ).all()
    return [_request_payload(friendship, requester) for friendship, requester in rows]


async def _accept(db: AsyncSession, friendship: Friendship) -> None:
    friendship.status = "ACCEPTED"
    friendship.responded_at = utcnow()
    await db.flush()
    for user_id in (friendship.user_id, friendship.friend_id):
        member = await db.get(User, user_id)
        if member is not None:
            await evaluate_achievements(db, member)


async def send_request(db: AsyncSession, user: User, email: str) -> dict:
    email = email.lower()
    if email == user.email.lower():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot send a friend request to yourself",
        )

    target = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = (
        await db.execute(select(Friendship).where(_pair_clause(user.id, target.id)))
    ).scalars().all()
    for friendship in existing:
        if friendship.status == "ACCEPTED":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already friends")
        if friendship.status == "PENDING" and friendship.user_id == target.id:
            # they already asked us: accept instead of duplicating
            await _accept(db, friendship)
            await db.commit()
            logger.info("friend request %s auto-accepted by user %s", friendship.id, user.id)
            return _request_payload(friendship, target)
        if friendship.status == "PENDING":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Friend request already sent")

    declined = next((f for f in existing if f.user_id == user.id), None)
    if declined is not None:
        # re-open a previously declined request
        declined.status = "PENDING"
        declined.created_at = utcnow()
        declined.responded_at = None
        friendship = declined
    else:
        for stale in existing:
            await db.delete(stale)
        await db.flush()
        friendship = Friendship(user_id=user.id, friend_id=target.id, status="PENDING")
        db.add(friendship)
    await db.commit()
    await db.refresh(friendship)
    logger.info("friend request %s sent: %s -> %s", friendship.id, user.id, target.id)
    return _request_payload(friendship, user)


async def respond_to_request(db: AsyncSession, user: User, request_id: int, accept: bool) -> dict:
    friendship = await db.get(Friendship, request_id)
    if friendship is None or friendship.friend_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Friend request not found")
    if friendship.status != "PENDING":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Friend request is not pending")

    if accept:
        await _accept(db, friendship)
    else:
        friendship.status = "DECLINED"
        friendship.responded_at = utcnow()
    await db.commit()

    requester = await db.get(User, friendship.user_id)
    return _request_payload(friendship, requester)
