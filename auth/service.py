"""
auth/service.py -- The session state machine: register, login, refresh, logout, me.

Session states are recomputed from the cookies on every request and never
stored:

  ANONYMOUS                     no cookies at all
  ACCESS_VALID                  access token verifies
  ACCESS_EXPIRED_REFRESH_VALID  access token missing/invalid, refresh token verifies
  INVALID                       cookies present but nothing verifies

me() and logout() act only on ACCESS_VALID; refresh() checks the refresh
cookie itself whatever the state.

Each transition is one method returning an AuthResult (AuthSuccess or
AuthFailure). Expected failures are values, not exceptions; only genuinely
unexpected errors (database down, etc.) propagate to the API's 500 handler.
logout() is the exception to that rule: it always succeeds.

Rotation invariant:
  The user row holds the hash of exactly one refresh token. Every
  login/register/refresh overwrites it, so any earlier refresh token stops
  working the moment the new hash is written, even though its signature and
  expiry are still valid. refresh() checks the presented token against the
  stored hash (bcrypt verify, not equality) to enforce this.

Known limitation (kept deliberately):
  Two concurrent refresh() calls presenting the same token can both pass the
  hash check before either writes. The last write wins and the other caller
  is left holding a refresh token that no longer matches. There is no version
  column or lock to prevent this.

  Tokens are issued before their hash is persisted. If the process dies in
  between, the client holds a refresh token the store never recorded, and
  the next refresh() fails closed with UNAUTHORIZED.

Layer rule: no imports from api/, tasks/ or client/.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from auth.hashing import Hasher
from auth.models import (
    AuthFailure,
    AuthResult,
    AuthSuccess,
    ErrorKind,
    PublicUser,
    SessionCookies,
    SessionInfo,
    SessionState,
    TokenPair,
    TokenPayload,
    User,
)
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("taskboard.auth")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(value: str) -> str:
    return value.strip().lower()


def public_user(user: User, *, include_created_at: bool = False) -> PublicUser:
    return PublicUser(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at if include_created_at else None,
    )


class AuthService:
    """Auth orchestrator over a UserStore, Hasher and TokenService.

    Stateless apart from its collaborators; one instance serves every request.
    """

    def __init__(self, store: UserStore, hasher: Hasher, tokens: TokenService) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        # Timing equalization: login() verifies against this when the email is
        # unknown so the response time does not reveal which emails exist.
        self._dummy_hash = hasher.hash("taskboard_timing_dummy")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def classify(self, cookies: SessionCookies) -> SessionState:
        """Return the session state implied by the presented cookies."""
        return self._resolve(cookies)[0]

    def _resolve(self, cookies: SessionCookies) -> tuple[SessionState, TokenPayload | None]:
        """Classify the cookies and keep the verified access payload, if any.

        me() and logout() act only on ACCESS_VALID. refresh() does not branch
        here: it must verify the refresh token even when the access token is
        still good, since ACCESS_VALID says nothing about the refresh cookie.
        """
        if not cookies.access_token and not cookies.refresh_token:
            return SessionState.ANONYMOUS, None
        payload = self.tokens.verify_access_token(cookies.access_token)
        if payload is not None:
            return SessionState.ACCESS_VALID, payload
        if self.tokens.verify_refresh_token(cookies.refresh_token) is not None:
            return SessionState.ACCESS_EXPIRED_REFRESH_VALID, None
        return SessionState.INVALID, None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def register(self, email: str | None, password: str | None, name: str | None = None) -> AuthResult:
        """Create an account and open its first session."""
        if not email or not password:
            return AuthFailure(ErrorKind.VALIDATION, "Email and password are required")
        if not EMAIL_PATTERN.match(email.strip()):
            return AuthFailure(ErrorKind.VALIDATION, "Invalid email format")
        if len(password) < MIN_PASSWORD_LENGTH:
            return AuthFailure(
                ErrorKind.VALIDATION, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        normalized = normalize_email(email)
        if self.store.find_by_email(normalized) is not None:
            return AuthFailure(ErrorKind.CONFLICT, "User with this email already exists")

        try:
            user = self.store.create(
                email=normalized,
                password_hash=self.hasher.hash(password),
                name=name or None,
            )
        except IntegrityError:
            # A concurrent registration won the insert race.
            return AuthFailure(ErrorKind.CONFLICT, "User with this email already exists")

        tokens = self._open_session(user)
        logger.info("Registered user %s", user.id)
        return AuthSuccess(message="Registration successful", user=public_user(user), tokens=tokens)

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Verify credentials and replace any existing session with a new one."""
        if not email or not password:
            return AuthFailure(ErrorKind.VALIDATION, "Email and password are required")

        user = self.store.find_by_email(normalize_email(email))
        if user is None:
            self.hasher.verify(password, self._dummy_hash)
            logger.info("Login failed: unknown email")
            return AuthFailure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: bad password for user %s", user.id)
            return AuthFailure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

        tokens = self._open_session(user)
        logger.info("User %s logged in", user.id)
        return AuthSuccess(message="Login successful", user=public_user(user), tokens=tokens)

    def refresh(self, cookies: SessionCookies) -> AuthResult:
        """Rotate the token pair using the refresh cookie.

        Every rejection after the cookie is found asks the caller to clear
        both cookies, so the client never keeps a pair the server refused.
        """
        presented = cookies.refresh_token
        if not presented:
            return AuthFailure(ErrorKind.UNAUTHORIZED, "Refresh token not found")

        payload = self.tokens.verify_refresh_token(presented)
        if payload is None:
            logger.warning("Refresh rejected: bad signature or expired")
            return AuthFailure(ErrorKind.UNAUTHORIZED, "Invalid or expired refresh token", clear_cookies=True)

        user = self.store.find_by_id(payload.user_id)
        if user is None or not user.refresh_token_hash:
            logger.warning("Refresh rejected: no active session for user %s", payload.user_id)
            return AuthFailure(ErrorKind.UNAUTHORIZED, "User not found or session expired", clear_cookies=True)

        if not self.hasher.verify(presented, user.refresh_token_hash):
            # Signature is fine but the token was rotated away (or never recorded).
            logger.warning("Refresh rejected: superseded token for user %s", user.id)
            return AuthFailure(ErrorKind.UNAUTHORIZED, "Invalid refresh token", clear_cookies=True)

        tokens = self._open_session(user)
        return AuthSuccess(message="Tokens refreshed successfully", tokens=tokens)

    def logout(self, cookies: SessionCookies) -> AuthSuccess:
        """Invalidate the server-side session if identifiable; always succeeds.

        Only ACCESS_VALID identifies the user. In any other state the stored
        refresh hash is left alone and just the cookies are cleared.
        """
        try:
            state, payload = self._resolve(cookies)
            if state is SessionState.ACCESS_VALID:
                self.store.update(payload.user_id, refresh_token_hash=None)
                logger.info("User %s logged out", payload.user_id)
            else:
                logger.info("Logout without an identifiable session (%s)", state.value)
        except Exception:
            logger.exception("Logout invalidation failed; clearing cookies anyway")
        return AuthSuccess(message="Logout successful", clear_cookies=True)

    def me(self, cookies: SessionCookies) -> SessionInfo:
        """Report who the access cookie belongs to. Unauthenticated is not an error.

        ACCESS_EXPIRED_REFRESH_VALID still reports authenticated=false; the
        client is expected to call refresh() and ask again.
        """
        state, payload = self._resolve(cookies)
        if state is not SessionState.ACCESS_VALID:
            return SessionInfo(authenticated=False)
        user = self.store.find_by_id(payload.user_id)
        if user is None:
            return SessionInfo(authenticated=False)
        return SessionInfo(authenticated=True, user=public_user(user, include_created_at=True))

    def current_user_id(self, access_token: str | None) -> str | None:
        """Return the verified user id behind an access token, or None.

        This is the only thing the task routes take from the auth core.
        """
        payload = self.tokens.verify_access_token(access_token)
        return payload.user_id if payload is not None else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_session(self, user: User) -> TokenPair:
        """Issue a fresh pair and record its refresh hash, replacing the old one."""
        tokens = self.tokens.issue_pair(TokenPayload(user_id=user.id, email=user.email))
        self.store.update(user.id, refresh_token_hash=self.hasher.hash(tokens.refresh_token))
        return tokens
