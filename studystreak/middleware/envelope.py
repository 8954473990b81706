"""Wraps plain JSON responses as `{"status": "success", "data": ...}`."""

import json

from fastapi import Request
from starlette.responses import Response

PASSTHROUGH_PATHS = frozenset({"/metrics", "/docs", "/redoc", "/openapi.json"})


def _with_body(response: Response, content: bytes) -> Response:
    rebuilt = Response(content=content, status_code=response.status_code, media_type="application/json")
    # raw_headers keeps repeated set-cookie lines
    rebuilt.raw_headers = [
        (k.encode("latin-1"), v.encode("latin-1"))
        for k, v in response.headers.items()
        if k.lower() != "content-length"
    ] + [(b"content-length", str(len(content)).encode("latin-1"))]
    return rebuilt


def wrap_payload(payload, status_code: int):
    """Envelope for a decoded body, or None when it already has one."""
    if isinstance(payload, dict) and payload.get("status") in {"success", "error"}:
        return None
    if status_code >= 400:
        return {"status": "error", "message": "Request failed", "error": payload}
    return {"status": "success", "data": payload}


async def response_envelope(request: Request, call_next):
    response = await call_next(request)
    if request.url.path in PASSTHROUGH_PATHS:
        return response
    if "application/json" not in response.headers.get("content-type", ""):
        return response

    chunks = [
        chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        async for chunk in response.body_iterator
    ]
    body = b"".join(chunks)

    try:
        payload = json.loads(body) if body else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _with_body(response, body)

    wrapped = wrap_payload(payload, response.status_code)
    if wrapped is None:
        return _with_body(response, body)
    return _with_body(response, json.dumps(wrapped, ensure_ascii=False).encode("utf-8"))
