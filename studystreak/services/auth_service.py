"""Authentication business logic."""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from typing import TYPE_CHECKING

from fastapi import HTTPException, Response, status
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.config import get_settings
from studystreak.core.redis_keys import (
    key_refresh_token,
    key_token_blacklist,
    key_user_refresh_tokens,
)
from studystreak.core.security import (
    REFRESH_TOKEN,
    access_expires_in,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    refresh_expires_in,
    verify_password,
)
from studystreak.core.timeutil import utcnow
from studystreak.models.user import User, UserPreference
from studystreak.schemas.auth import RegisterRequest, UserProfile
from studystreak.services import get_redis_cache

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = logging.getLogger(__name__)

COOKIE_MAX_AGE = 7 * 24 * 60 * 60
REMEMBER_COOKIE_MAX_AGE = 30 * 24 * 60 * 60


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def _require_redis() -> "redis.Redis":
    cache = await get_redis_cache()
    if not cache.client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Redis unavailable for token management",
        )
    return cache.client


async def _store_refresh_token(*, user_id: int, jti: str, token_hash: str, ttl: int) -> None:
    client = await _require_redis()
    user_key = key_user_refresh_tokens(user_id)
    async with client.pipeline(transaction=True) as pipe:
        pipe.setex(key_refresh_token(jti), ttl, token_hash)
        pipe.sadd(user_key, jti)
        pipe.expire(user_key, ttl)
        await pipe.execute()


async def revoke_user_refresh_tokens(user_id: int) -> None:
    client = await _require_redis()
    user_key = key_user_refresh_tokens(user_id)
    jtis = await client.smembers(user_key)
    if not jtis:
        await client.delete(user_key)
        return
    async with client.pipeline(transaction=True) as pipe:
        for jti in jtis:
            pipe.delete(key_refresh_token(jti))
        pipe.delete(user_key)
        await pipe.execute()


async def _issue_tokens(user: User) -> dict:
    """Access token always; refresh token only when Redis can store it."""
    access_token = create_access_token(user.id, user.email, user.role)
    refresh_jti = uuid.uuid4().hex
    refresh_token: str | None = create_refresh_token(user.id, jti=refresh_jti)
    try:
        await _store_refresh_token(
            user_id=user.id,
            jti=refresh_jti,
            token_hash=_hash_token(refresh_token),
            ttl=refresh_expires_in(),
        )
    except (HTTPException, RedisError, OSError) as e:
        logger.warning("refresh token not issued for user %s: %s", user.id, getattr(e, "detail", e))
        refresh_token = None
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "Bearer",
        "expires_in": access_expires_in(),
        "user": UserProfile.model_validate(user),
    }


async def register_user(db: AsyncSession, payload: RegisterRequest) -> dict:
    email = payload.email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = User(
        email=email,
        name=payload.name,
        password_hash=hash_password(payload.password),
        preferences=UserPreference(),
    )
    db.add(user)
    try:
        await db.commit()
        await db.refresh(user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    logger.info("user registered: id=%s", user.id)
    return await _issue_tokens(user)


async def login_user(db: AsyncSession, *, email: str, password: str) -> dict:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("failed login attempt for %s", email.lower())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    user.last_login_at = utcnow()
    await db.commit()
    await db.refresh(user)
    return await _issue_tokens(user)


async def refresh_tokens(db: AsyncSession, *, refresh_token: str) -> dict:
    payload = decode_token(refresh_token, REFRESH_TOKEN)
    jti = payload["jti"]
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    client = await _require_redis()
    token_key = key_refresh_token(jti)
    user_key = key_user_refresh_tokens(user.id)
    stored_hash = await client.get(token_key)
    if not stored_hash or stored_hash != _hash_token(refresh_token):
        # reuse or unknown token: revoke every refresh token of this user
        logger.warning("refresh token reuse detected for user %s", user.id)
        await revoke_user_refresh_tokens(user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token reuse detected",
        )

    refresh_ttl = refresh_expires_in()
    new_jti = uuid.uuid4().hex
    new_refresh_token = create_refresh_token(user.id, jti=new_jti)
    async with client.pipeline(transaction=True) as pipe:
        pipe.delete(token_key)
        pipe.srem(user_key, jti)
        pipe.setex(key_refresh_token(new_jti), refresh_ttl, _hash_token(new_refresh_token))
        pipe.sadd(user_key, new_jti)
        pipe.expire(user_key, refresh_ttl)
        await pipe.execute()

    return {
        "access_token": create_access_token(user.id, user.email, user.role),
        "refresh_token": new_refresh_token,
        "token_type": "Bearer",
        "expires_in": access_expires_in(),
        "user": UserProfile.model_validate(user),
    }


async def logout_user(access_token: str | None) -> None:
    """Blacklist the access token until it expires and drop the user's refresh tokens.

    Missing, expired or malformed tokens are ignored.
    """
    if not access_token:
        return
    try:
        payload = decode_token(access_token)
    except HTTPException:
        return

    cache = await get_redis_cache()
    ttl = max(1, int(payload.get("exp", 0) - time.time()))
    await cache.set(key_token_blacklist(payload["jti"]), "1", ttl)
    if cache.client:
        await revoke_user_refresh_tokens(int(payload["sub"]))
    logger.info("user %s logged out", payload["sub"])


# ==================== COOKIE ====================


def set_auth_cookie(response: Response, access_token: str, remember: bool = False) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=access_token,
        max_age=REMEMBER_COOKIE_MAX_AGE if remember else COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
