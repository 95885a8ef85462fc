"""
auth/cookies.py -- Session cookie transport for the access/refresh token pair.

Both cookies are:
  httponly=True: JS cannot read them (XSS mitigation).
  samesite="lax": sent on top-level navigations but not on cross-site POST --
      CSRF mitigation for the state-changing auth routes.
  secure: only sent over HTTPS in production (Settings.cookies_secure).
  path="/": visible to every route, including /api/tasks.

max_age of each cookie matches the lifetime of the token it carries, so the
browser drops an access cookie at the same moment the token would be
rejected anyway.
"""

from __future__ import annotations

from typing import Literal

from starlette.requests import Request
from starlette.responses import Response

from auth.models import SessionCookies
from core.config import get_settings

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
COOKIE_PATH = "/"
COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"


def set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Write both session cookies with their independent lifetimes."""
    settings = get_settings()
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        max_age=settings.access_token_expire_seconds,
        path=COOKIE_PATH,
        httponly=True,
        secure=settings.cookies_secure,
        samesite=COOKIE_SAMESITE,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        max_age=settings.refresh_token_expire_seconds,
        path=COOKIE_PATH,
        httponly=True,
        secure=settings.cookies_secure,
        samesite=COOKIE_SAMESITE,
    )


def read_session_cookies(request: Request) -> SessionCookies:
    """Read both session cookies. Empty values count as absent."""
    return SessionCookies(
        access_token=request.cookies.get(ACCESS_COOKIE) or None,
        refresh_token=request.cookies.get(REFRESH_COOKIE) or None,
    )


def clear_session_cookies(response: Response) -> None:
    """Expire both session cookies, whether or not the client sent them.

    Only appends Set-Cookie headers, so it cannot fail on client state; logout
    depends on that.
    """
    settings = get_settings()
    for key in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            key=key,
            path=COOKIE_PATH,
            httponly=True,
            secure=settings.cookies_secure,
            samesite=COOKIE_SAMESITE,
        )
