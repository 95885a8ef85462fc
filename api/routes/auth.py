"""
api/routes/auth.py -- Session endpoints.

Routes:
  POST /api/auth/register   -- create account; sets session cookies; 201
  POST /api/auth/login      -- password login; sets session cookies
  POST /api/auth/refresh    -- rotate the token pair using the refresh cookie
  POST /api/auth/logout     -- clear server-side session and cookies; always 200
  GET  /api/auth/me         -- who the access cookie belongs to; never 401

Every handler is a thin translation layer: read cookies, call one AuthService
method, turn the AuthResult into a JSONResponse, and apply its cookie
directive (set, clear, or leave alone). No auth decisions are made here.

Security:
  POST /register and /login are rate-limited per client IP (AUTH_RATE_LIMIT).
  @limiter.limit must sit below @router.post so the router registers the
  limited wrapper; SlowAPIMiddleware alone only applies default limits.
  Cache-Control: no-store on every response that carries fresh tokens.
  Login failures share one message for unknown email and wrong password.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.errors import error_response
from api.limiter import limiter
from api.models import (
    AuthUserResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    UserOut,
)
from auth.cookies import clear_session_cookies, read_session_cookies, set_session_cookies
from auth.dependencies import get_auth_service
from auth.models import STATUS_CODES, AuthFailure, AuthResult, AuthSuccess
from auth.service import AuthService
from core.config import get_settings

# Auth policy: every route here is public. The session itself is the input.
router = APIRouter()


def _auth_rate_limit() -> str:
    # Read per request so a changed AUTH_RATE_LIMIT applies without re-import.
    return get_settings().auth_rate_limit


# ---------------------------------------------------------------------------
# Result translation
# ---------------------------------------------------------------------------


def _to_response(result: AuthResult, success_status: int = 200) -> JSONResponse:
    """Render an AuthResult and apply its cookie directive to the response."""
    if isinstance(result, AuthFailure):
        resp = error_response(STATUS_CODES[result.kind], result.kind.value, result.message)
    elif result.user is not None:
        body = AuthUserResponse(message=result.message, user=UserOut.from_public(result.user))
        # createdAt belongs to /auth/me only.
        resp = JSONResponse(
            status_code=success_status,
            content=body.model_dump(by_alias=True, exclude={"user": {"created_at"}}),
        )
    else:
        resp = JSONResponse(status_code=success_status, content=MessageResponse(message=result.message).model_dump())

    if result.clear_cookies:
        clear_session_cookies(resp)
    elif isinstance(result, AuthSuccess) and result.tokens is not None:
        set_session_cookies(resp, result.tokens.access_token, result.tokens.refresh_token)
        resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", status_code=201, response_model=AuthUserResponse)
@limiter.limit(_auth_rate_limit)
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account and start its first session."""
    result = service.register(body.email, body.password, body.name)
    return _to_response(result, success_status=201)


@router.post("/auth/login", response_model=AuthUserResponse)
@limiter.limit(_auth_rate_limit)
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password; replaces any existing session."""
    result = service.login(body.email, body.password)
    resp = _to_response(result)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/refresh", response_model=MessageResponse)
def refresh(request: Request, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Exchange the refresh cookie for a new token pair."""
    return _to_response(service.refresh(read_session_cookies(request)))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """End the session. Succeeds with or without a prior session."""
    return _to_response(service.logout(read_session_cookies(request)))


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, service: AuthService = Depends(get_auth_service)) -> MeResponse:
    """Return the current user, or authenticated=false. Safe to poll."""
    info = service.me(read_session_cookies(request))
    return MeResponse(
        authenticated=info.authenticated,
        user=UserOut.from_public(info.user) if info.user is not None else None,
    )
