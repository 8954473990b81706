"""Fixed-window per-IP rate limit middleware (100 req/min on /api/)."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from studystreak.core.config import get_settings
from studystreak.services.rate_limiter import check_scope, client_ip

logger = logging.getLogger(__name__)

# paths exempt from the api scope
_EXEMPT_PATHS = {"/metrics", "/docs", "/redoc", "/openapi.json", "/"}
_EXEMPT_PREFIXES = ("/api/v1/health", "/api/health")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """IP based fixed window rate limit."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if (
            not get_settings().RATE_LIMIT_ENABLED
            or path in _EXEMPT_PATHS
            or not path.startswith("/api/")
            or path.startswith(_EXEMPT_PREFIXES)
        ):
            return await call_next(request)

        ip = client_ip(request.headers, request.client.host if request.client else None)
        result = await check_scope("api", ip)
        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={"status": "error", "message": "Too many requests"},
                headers={
                    "Retry-After": str(result.retry_after),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(result.reset_at // 1000),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return response
