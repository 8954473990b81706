"""Focus session endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.focus import (
    FocusSessionListResponse,
    FocusSessionResponse,
    FocusSessionResult,
    FocusSessionStart,
    FocusSessionUpdate,
    TimerPlan,
)
from studystreak.services.focus_service import (
    get_active_session,
    list_sessions,
    start_session,
    timer_plan,
    update_session,
)

router = APIRouter(prefix="/focus-sessions", tags=["focus"])


@router.get("", response_model=FocusSessionListResponse)
async def get_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await list_sessions(db, user, page, limit, start_date, end_date)


@router.get("/active", response_model=Optional[FocusSessionResponse])
async def active_session(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_active_session(db, user.id)


@router.get("/timer", response_model=TimerPlan)
async def next_interval(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Interval the Pomodoro timer should load next."""
    return await timer_plan(db, user)


@router.post("", response_model=FocusSessionResponse, status_code=status.HTTP_201_CREATED)
async def start(
    payload: FocusSessionStart,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await start_session(db, user, payload)


@router.patch("/{session_id}", response_model=FocusSessionResult)
async def update(
    session_id: int,
    payload: FocusSessionUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await update_session(db, user, session_id, payload)
