"""Challenge endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.social import (
    ChallengeCreate,
    ChallengeDetail,
    ChallengeProgressUpdate,
    ChallengeSummary,
)
from studystreak.services.challenge_service import (
    create_challenge,
    get_challenge_detail,
    join_challenge,
    leave_challenge,
    list_challenges,
    update_progress,
)

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("", response_model=list[ChallengeSummary])
async def get_challenges(
    challenge_status: Literal["active", "upcoming", "ended", "all"] = Query("active", alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await list_challenges(db, user, challenge_status)


@router.post("", response_model=ChallengeSummary, status_code=status.HTTP_201_CREATED)
async def post_challenge(
    payload: ChallengeCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await create_challenge(db, user, payload)


@router.get("/{challenge_id}", response_model=ChallengeDetail)
async def get_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await get_challenge_detail(db, challenge_id, user)


@router.post("/{challenge_id}/join", status_code=status.HTTP_201_CREATED)
async def join(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await join_challenge(db, challenge_id, user)


@router.delete("/{challenge_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await leave_challenge(db, challenge_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{challenge_id}/progress")
async def patch_progress(
    challenge_id: int,
    payload: ChallengeProgressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await update_progress(db, challenge_id, user, payload.progress)
