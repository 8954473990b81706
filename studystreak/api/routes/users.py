"""Dashboard, preferences, streak and achievements of the current user."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.user import (
    AchievementStatus,
    DashboardResponse,
    PreferencesResponse,
    PreferencesUpdate,
    StreakResponse,
)
from studystreak.services.gamification import list_achievements
from studystreak.services.streak_service import streak_summary
from studystreak.services.user_service import (
    get_dashboard,
    get_or_create_preferences,
    preferences_payload,
    update_preferences,
)

router = APIRouter(tags=["users"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await get_dashboard(db, user)


@router.get("/users/me/preferences", response_model=PreferencesResponse)
async def read_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    prefs = await get_or_create_preferences(db, user)
    return preferences_payload(prefs, user)


@router.put("/users/me/preferences", response_model=PreferencesResponse)
async def write_preferences(
    payload: PreferencesUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await update_preferences(db, user, payload)


@router.get("/streak", response_model=StreakResponse)
async def streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await streak_summary(db, user)


@router.get("/achievements", response_model=list[AchievementStatus])
async def achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await list_achievements(db, user)
