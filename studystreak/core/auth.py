"""JWT authentication dependencies."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.config import get_settings
from studystreak.core.database import get_db
from studystreak.core.redis_keys import TTL_PRESENCE, key_presence, key_token_blacklist
from studystreak.core.security import ACCESS_TOKEN, decode_token
from studystreak.models.user import User
from studystreak.services.redis_cache import get_redis_cache

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().AUTH_COOKIE_NAME) or None


async def _resolve_user(token: str, db: AsyncSession) -> User:
    payload = decode_token(token, ACCESS_TOKEN)

    cache = await get_redis_cache()
    if await cache.exists(key_token_blacklist(payload["jti"])):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token revoked",
        )

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user = await db.get(User, user_id)
    if not user:
        logger.warning("Valid JWT for missing user: %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    await cache.set(key_presence(user.id), "1", TTL_PRESENCE)
    return user


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Optional auth: a present token must be valid, a missing one yields None."""
    token = extract_token(request, credentials)
    if not token:
        return None
    return await _resolve_user(token, db)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Required auth."""
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return await _resolve_user(token, db)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "ADMIN":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user
