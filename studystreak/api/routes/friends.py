"""Friends endpoints."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.social import (
    FriendListResponse,
    FriendRequestCreate,
    FriendRequestResponse,
)
from studystreak.services.social_service import (
    incoming_requests,
    list_friends,
    remove_friend,
    respond_to_request,
    send_request,
)

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("", response_model=FriendListResponse)
async def get_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await list_friends(db, user)


@router.get("/requests", response_model=list[FriendRequestResponse])
async def get_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await incoming_requests(db, user)


@router.post("/requests", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await send_request(db, user, payload.email)


@router.post("/requests/{request_id}/accept", response_model=FriendRequestResponse)
async def accept_request(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await respond_to_request(db, user, request_id, accept=True)


@router.post("/requests/{request_id}/decline", response_model=FriendRequestResponse)
async def decline_request(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await respond_to_request(db, user, request_id, accept=False)


@router.delete("/{friend_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unfriend(
    friend_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await remove_friend(db, user, friend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
