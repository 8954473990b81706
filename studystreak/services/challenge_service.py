"""Study challenges: listing, membership, leaderboard and automatic progress."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.security import sanitize_input
from studystreak.core.timeutil import utcnow
from studystreak.models.social import Challenge, ChallengeParticipant
from studystreak.models.user import User
from studystreak.schemas.social import ChallengeCreate

logger = logging.getLogger(__name__)


def _status_clause(challenge_status: str, now: datetime):
    if challenge_status == "active":
        return (Challenge.start_date <= now) & (Challenge.end_date >= now)
    if challenge_status == "upcoming":
        return Challenge.start_date > now
    if challenge_status == "ended":
        return Challenge.end_date < now
    return None


def _percent(progress: int, goal: int) -> float:
    if goal <= 0:
        return 100.0
    return round(min(progress / goal * 100, 100.0), 1)


def _apply_progress(participant: ChallengeParticipant, goal: int, progress: int, now: datetime) -> None:
    participant.progress = max(progress, 0)
    if participant.progress >= goal and participant.completed_at is None:
        participant.completed_at = now
        logger.info(
            "challenge %s completed by user %s", participant.challenge_id, participant.user_id
        )


async def _get_participant(db: AsyncSession, challenge_id: int, user_id: int) -> ChallengeParticipant | None:
    result = await db.execute(
        select(ChallengeParticipant).where(
            ChallengeParticipant.challenge_id == challenge_id,
            ChallengeParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _get_visible_challenge(db: AsyncSession, challenge_id: int, user: User) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Challenge not found")
    if not challenge.is_public and challenge.creator_id != user.id:
        if await _get_participant(db, challenge.id, user.id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Challenge not found")
    return challenge


def _summary(challenge: Challenge, participant_count: int, mine: ChallengeParticipant | None) -> dict:
    return {
        "id": challenge.id,
        "title": challenge.title,
        "description": challenge.description,
        "type": challenge.type,
        "goal": challenge.goal,
        "unit": challenge.unit,
        "start_date": challenge.start_date,
        "end_date": challenge.end_date,
        "is_public": challenge.is_public,
        "creator_id": challenge.creator_id,
        "participant_count": participant_count,
        "joined": mine is not None,
        "my_progress": mine.progress if mine else None,
    }


# ==================== QUERIES ====================


async def list_challenges(db: AsyncSession, user: User, challenge_status: str = "active") -> list[dict]:
    now = utcnow()
    mine_subq = select(ChallengeParticipant.challenge_id).where(ChallengeParticipant.user_id == user.id)
    query = select(Challenge).where(
        or_(
            Challenge.is_public.is_(True),
            Challenge.creator_id == user.id,
            Challenge.id.in_(mine_subq),
        )
    )
    clause = _status_clause(challenge_status, now)
    if clause is not None:
        query = query.where(clause)
    query = query.order_by(Challenge.end_date.asc(), Challenge.id.asc())
    challenges = (await db.execute(query)).scalars().all()
    if not challenges:
        return []

    ids = [c.id for c in challenges]
    counts = dict(
        (
            await db.execute(
                select(ChallengeParticipant.challenge_id, func.count(ChallengeParticipant.id))
                .where(ChallengeParticipant.challenge_id.in_(ids))
                .group_by(ChallengeParticipant.challenge_id)
            )
        ).all()
    )
    memberships = {
        p.challenge_id: p
        for p in (
            await db.execute(
                select(ChallengeParticipant).where(
                    ChallengeParticipant.challenge_id.in_(ids),
                    ChallengeParticipant.user_id == user.id,
                )
            )
        ).scalars().all()
    }
    return [_summary(c, counts.get(c.id, 0), memberships.get(c.id)) for c in challenges]


async def leaderboard(db: AsyncSession, challenge: Challenge) -> list[dict]:
    rows = (
        await db.execute(
            select(ChallengeParticipant, User)
            .join(User, User.id == ChallengeParticipant.user_id)
            .where(ChallengeParticipant.challenge_id == challenge.id)
            .order_by(ChallengeParticipant.progress.desc(), ChallengeParticipant.joined_at.asc(), ChallengeParticipant.id.asc())
        )
    ).all()
    return [
        {
            "rank": rank,
            "user_id": user.id,
            "name": user.name,
            "avatar": user.avatar,
            "progress": participant.progress,
            "percent": _percent(participant.progress, challenge.goal),
            "completed": participant.completed_at is not None,
        }
        for rank, (participant, user) in enumerate(rows, start=1)
    ]


async def get_challenge_detail(db: AsyncSession, challenge_id: int, user: User) -> dict:
    challenge = await _get_visible_challenge(db, challenge_id, user)
    board = await leaderboard(db, challenge)
    mine = next((p for p in board if p["user_id"] == user.id), None)
    detail = _summary(challenge, len(board), None)
    detail["joined"] = mine is not None
    detail["my_progress"] = mine["progress"] if mine else None
    detail["leaderboard"] = board
    return detail


# ==================== COMMANDS ====================


async def create_challenge(db: AsyncSession, user: User, payload: ChallengeCreate) -> dict:
    challenge = Challenge(
        title=sanitize_input(payload.title),
        description=sanitize_input(payload.description),
        type=payload.type,
        goal=payload.goal,
        unit=sanitize_input(payload.unit),
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_public=payload.is_public,
        creator_id=user.id,
    )
    db.add(challenge)
    await db.flush()

    participant = ChallengeParticipant(challenge_id=challenge.id, user_id=user.id, progress=0)
    if challenge.type == "STREAK" and challenge.start_date <= utcnow() <= challenge.end_date:
        _apply_progress(participant, challenge.goal, user.current_streak or 0, utcnow())
    db.add(participant)
    await db.commit()
    logger.info("challenge %s created by user %s", challenge.id, user.id)
    return _summary(challenge, 1, participant)


async def join_challenge(db: AsyncSession, challenge_id: int, user: User) -> dict:
    challenge = await _get_visible_challenge(db, challenge_id, user)
    now = utcnow()
    if challenge.end_date < now:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Challenge has ended")
    if await _get_participant(db, challenge.id, user.id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already joined this challenge")

    participant = ChallengeParticipant(challenge_id=challenge.id, user_id=user.id, progress=0)
    if challenge.type == "STREAK" and challenge.start_date <= now:
        _apply_progress(participant, challenge.goal, user.current_streak or 0, now)
    db.add(participant)
    await db.commit()
    return {
        "challenge_id": challenge.id,
        "user_id": user.id,
        "progress": participant.progress,
        "joined_at": participant.joined_at,
    }


async def leave_challenge(db: AsyncSession, challenge_id: int, user: User) -> None:
    challenge = await _get_visible_challenge(db, challenge_id, user)
    if challenge.creator_id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The creator cannot leave their own challenge",
        )
    participant = await _get_participant(db, challenge.id, user.id)
    if participant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not a participant")
    await db.delete(participant)
    await db.commit()


async def update_progress(db: AsyncSession, challenge_id: int, user: User, progress: int) -> dict:
    challenge = await _get_visible_challenge(db, challenge_id, user)
    if challenge.type != "CUSTOM":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Progress is tracked automatically for this challenge type",
        )
    participant = await _get_participant(db, challenge.id, user.id)
    if participant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not a participant")

    _apply_progress(participant, challenge.goal, progress, utcnow())
    await db.commit()
    return {
        "challenge_id": challenge.id,
        "progress": participant.progress,
        "percent": _percent(participant.progress, challenge.goal),
        "completed": participant.completed_at is not None,
    }


# ==================== AUTOMATIC PROGRESS ====================


async def _running_memberships(
    db: AsyncSession, user_id: int, challenge_type: str, now: datetime
) -> list[tuple[ChallengeParticipant, Challenge]]:
    rows = await db.execute(
        select(ChallengeParticipant, Challenge)
        .join(Challenge, Challenge.id == ChallengeParticipant.challenge_id)
        .where(
            ChallengeParticipant.user_id == user_id,
            Challenge.type == challenge_type,
            Challenge.start_date <= now,
            Challenge.end_date >= now,
        )
    )
    return list(rows.all())


async def advance_challenges(db: AsyncSession, user_id: int, challenge_type: str, amount: int) -> int:
    """Add `amount` to every running challenge of the given type the user joined. Caller commits."""
    if amount <= 0:
        return 0
    now = utcnow()
    memberships = await _running_memberships(db, user_id, challenge_type, now)
    for participant, challenge in memberships:
        _apply_progress(participant, challenge.goal, (participant.progress or 0) + amount, now)
    return len(memberships)


async def sync_streak_challenges(db: AsyncSession, user_id: int, streak: int) -> int:
    """STREAK challenges mirror the current streak. Caller commits."""
    now = utcnow()
    memberships = await _running_memberships(db, user_id, "STREAK", now)
    for participant, challenge in memberships:
        _apply_progress(participant, challenge.goal, streak, now)
    return len(memberships)
