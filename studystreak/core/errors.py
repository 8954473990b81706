"""Error responses in the `{status, message, error}` envelope."""

import logging
import traceback
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    error: Any = None,
    headers: dict | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, "error": error},
        headers=headers,
    )


async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex[:12]
    logger.error(
        "Unhandled exception [error_id=%s] %s %s: %s\n%s",
        error_id,
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return error_response(
        500,
        "Internal server error",
        {
            "code": "internal_error",
            "error_id": error_id,
            "detail": "An unexpected error occurred. Quote the error_id when reporting it.",
        },
    )


async def http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Dict details carry a `message` plus extra error fields."""
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("error") or "Request failed"
        error = {k: v for k, v in detail.items() if k != "message"}
    else:
        message = str(detail) if detail else "Request failed"
        error = None
    return error_response(exc.status_code, message, error, headers=getattr(exc, "headers", None))


async def validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    logger.warning("Validation error %s %s: %s", request.method, request.url.path, problems)
    return error_response(422, "Validation error", {"code": "validation_error", "detail": problems})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, unhandled_exception)
    app.add_exception_handler(StarletteHTTPException, http_exception)
    app.add_exception_handler(RequestValidationError, validation_exception)
