"""StudyStreak API application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from studystreak.api.routes import (
    admin,
    ai,
    auth,
    challenges,
    focus_sessions,
    friends,
    health,
    tasks,
    users,
)
from studystreak.core.config import DEFAULT_JWT_SECRET, settings
from studystreak.core.errors import register_exception_handlers
from studystreak.core.limiter import limiter
from studystreak.core.logging import get_logger, setup_logging
from studystreak.core.scheduler import start_scheduler, stop_scheduler
from studystreak.middleware.envelope import response_envelope
from studystreak.middleware.rate_limit import RateLimitMiddleware
from studystreak.middleware.security_headers import SecurityHeadersMiddleware
from studystreak.services import close_redis_cache, get_redis_cache

setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
)
logger = get_logger("api")

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.JWT_SECRET or settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set (openssl rand -hex 32)")

    logger.info("%s v%s starting", settings.APP_NAME, settings.APP_VERSION)
    cache = await get_redis_cache()
    if cache.client is None:
        logger.warning("Redis unreachable, caching and rate limits disabled")
    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    try:
        yield
    finally:
        stop_scheduler()
        await close_redis_cache()
        logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Focus sessions, study streaks, friends, challenges and an AI study assistant",
    lifespan=lifespan,
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/docs", "/redoc", "/openapi.json", "/"],
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

# innermost first: envelope, security headers, rate limit, CORS
app.middleware("http")(response_envelope)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module, tag in (
    (health, "health"),
    (auth, "auth"),
    (users, "users"),
    (tasks, "tasks"),
    (focus_sessions, "focus"),
    (friends, "friends"),
    (challenges, "challenges"),
    (ai, "ai"),
    (admin, "admin"),
):
    app.include_router(module.router, prefix=API_PREFIX, tags=[tag])

# older clients poll /api/health
app.include_router(health.router, prefix="/api", include_in_schema=False)


@app.get("/")
async def root():
    return {"name": settings.APP_NAME, "version": settings.APP_VERSION, "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("studystreak.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
