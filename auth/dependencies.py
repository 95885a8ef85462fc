"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two credential sources are checked in priority order:
  1. accessToken cookie -- set by the register/login/refresh flow.
  2. Authorization: Bearer <token> header -- API clients holding an access JWT.

get_current_user_id() raises HTTP 401 if neither source yields a valid token.
A missing token and a rejected one get different messages.

Only the access token is accepted here. Refresh tokens are signed with a
different secret and never authorize a request on their own.

Layer rule: no imports from api/, tasks/ or client/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.cookies import ACCESS_COOKIE
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built by the application lifespan."""
    return request.app.state.auth_service


def _presented_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_current_user_id(request: Request) -> str:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/tasks")
        def route(user_id: str = Depends(get_current_user_id)): ...
    """
    token = _presented_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Unauthorized"},
        )
    user_id = get_auth_service(request).current_user_id(token)
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired token"},
        )
    return user_id
