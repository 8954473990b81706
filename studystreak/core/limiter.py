"""slowapi limiter, kept in its own module to avoid circular imports."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from studystreak.core.config import settings

# auth endpoints: 5 attempts per minute per client address
AUTH_LIMIT = "5/minute"

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
