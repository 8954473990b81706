"""Authentication endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import extract_token, get_current_user, security
from studystreak.core.database import get_db
from studystreak.core.limiter import AUTH_LIMIT, limiter
from studystreak.models.user import User
from studystreak.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UserProfile,
)
from studystreak.services.auth_service import (
    clear_auth_cookie,
    login_user,
    logout_user,
    refresh_tokens,
    register_user,
    set_auth_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    result = await register_user(db, payload)
    set_auth_cookie(response, result["access_token"])
    return result


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    result = await login_user(db, email=payload.email, password=payload.password)
    set_auth_cookie(response, result["access_token"], remember=payload.remember)
    return result


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
async def refresh(
    request: Request,
    response: Response,
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    result = await refresh_tokens(db, refresh_token=payload.refresh_token)
    set_auth_cookie(response, result["access_token"])
    return result


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    await logout_user(extract_token(request, credentials))
    clear_auth_cookie(response)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserProfile)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user
