"""Password hashing, JWT issuance and input sanitising."""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from studystreak.core.config import get_settings

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=get_settings().BCRYPT_ROUNDS,
)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# ==================== PASSWORD HASHING ====================


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # malformed hash in storage
        logger.warning("Unverifiable password hash")
        return False


# ==================== JWT ====================


def access_expires_in() -> int:
    return get_settings().JWT_ACCESS_EXPIRE_MINUTES * 60


def refresh_expires_in() -> int:
    return get_settings().JWT_REFRESH_EXPIRE_DAYS * 24 * 60 * 60


def _build_token(
    subject: str,
    token_type: str,
    expires_in: int,
    extra_claims: dict | None = None,
    jti: str | None = None,
) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "jti": jti or uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: int, email: str, role: str) -> str:
    return _build_token(
        str(user_id),
        ACCESS_TOKEN,
        access_expires_in(),
        extra_claims={"email": email, "role": role},
    )


def create_refresh_token(user_id: int, jti: str | None = None) -> str:
    return _build_token(str(user_id), REFRESH_TOKEN, refresh_expires_in(), jti=jti)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict:
    """Decode and validate a token, raising 401 on any failure."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        )
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if payload.get("type") != expected_type or not payload.get("sub") or not payload.get("jti"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return payload


# ==================== INPUT SANITIZATION ====================

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def sanitize_input(text: str | None) -> str | None:
    if text is None:
        return None
    text = _ANGLE_BRACKETS.sub("", text)
    text = _JS_PROTOCOL.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    return text.strip()


# ==================== SECURITY HEADERS ====================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
