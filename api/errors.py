"""
api/errors.py -- The JSON error envelope and the app-wide exception handlers.

Every non-2xx response body has one shape:

    {"error": {"code": "<machine code>", "message": "<human message>"}}

Codes: validation_error (400), unauthorized (401), not_found (404),
conflict (409), rate_limited (429), internal_error (500).

Route handlers either raise HTTPException(detail={"code", "message"}) or, for
AuthService results, call error_response() directly. Raw exception text never
reaches a response body; it is logged instead.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from api.models import ErrorDetail, ErrorResponse

logger = logging.getLogger("taskboard.api")


def error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    detail: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


async def _on_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # exc.limit wraps the limits.RateLimitItem; its expiry is the window length.
    item = getattr(getattr(exc, "limit", None), "limit", None)
    retry_after = item.get_expiry() if item is not None else 60
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    return error_response(
        429,
        "rate_limited",
        "Too many requests.",
        detail=str(exc),
        headers={"Retry-After": str(retry_after)},
    )


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed body or query -> 400, the first problem spelled out in the message."""
    errors = exc.errors()
    message = "Request validation failed."
    if errors:
        first = errors[0]
        field = ".".join(p for p in first.get("loc", ()) if isinstance(p, str) and p not in ("body", "query"))
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", message)
    return error_response(400, "validation_error", message)


async def _on_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Pass {"code", "message"} details through; wrap plain-string details."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "internal_error", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, _on_rate_limit)
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(HTTPException, _on_http_exception)
    app.add_exception_handler(Exception, _on_unhandled)
