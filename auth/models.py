"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data containers, zero logic). Stores and the
AuthService do the work; these only carry shape between them.

The result types (AuthSuccess / AuthFailure) are the tagged outcome of every
AuthService operation. Route handlers translate them into HTTP responses; the
service never raises for an expected failure.

Layer rule: no imports from api/, tasks/ or client/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


@dataclass
class User:
    """A registered account.

    email is always stored normalized (stripped, lowercase).
    refresh_token_hash is None when the user has no active session. Only one
    refresh token is ever valid: each login/refresh overwrites the hash.
    """

    email: str
    password_hash: str
    id: str | None = None
    name: str | None = None
    refresh_token_hash: str | None = None
    created_at: str | None = None  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class PublicUser:
    """The subset of a User safe to return to the client."""

    id: str
    email: str
    name: str | None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenPayload:
    """Identity claims carried by both access and refresh tokens."""

    user_id: str
    email: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class SessionCookies:
    """Raw cookie values read from a request. Either may be absent."""

    access_token: str | None = None
    refresh_token: str | None = None


class SessionState(str, Enum):
    """Per-request session state, recomputed from cookies on every request."""

    ANONYMOUS = "anonymous"
    ACCESS_VALID = "access_valid"
    ACCESS_EXPIRED_REFRESH_VALID = "access_expired_refresh_valid"
    INVALID = "invalid"


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INTERNAL = "internal_error"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class AuthSuccess:
    """Successful outcome.

    tokens is set when the caller must write fresh session cookies.
    clear_cookies is set when the caller must delete them (logout).
    """

    message: str
    user: PublicUser | None = None
    tokens: TokenPair | None = None
    clear_cookies: bool = False


@dataclass(frozen=True)
class AuthFailure:
    """Failed outcome. clear_cookies asks the caller to drop the session cookies."""

    kind: ErrorKind
    message: str
    clear_cookies: bool = False


AuthResult = Union[AuthSuccess, AuthFailure]


@dataclass(frozen=True)
class SessionInfo:
    """Answer to "who am I". Not an error when unauthenticated."""

    authenticated: bool
    user: PublicUser | None = None
