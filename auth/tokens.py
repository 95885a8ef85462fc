"""
auth/tokens.py -- Access and refresh JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       different secrets, so a leaked access secret cannot mint refresh tokens
       and vice versa. Both carry the user id (sub), email, token type, issue
       time, expiry and a random jti. The jti keeps two tokens issued for the
       same user in the same second distinct, which rotation relies on.

  Verification returns None on any failure (bad signature, expired, wrong
       type, missing claims, malformed). Callers treat None as
       unauthenticated; nothing here raises for a bad token.

  Secrets: sourced from core.config.get_settings() by TokenService.from_settings()
       and never rotated at runtime.

Layer rule: no imports from api/, tasks/ or client/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import TokenPair, TokenPayload
from core.config import Settings, get_settings

_ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenService:
    """Issues and verifies the access/refresh token pair.

    Holds only the two signing secrets and lifetimes; safe to share across
    requests and threads.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl_seconds: int = 15 * 60,
        refresh_ttl_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TokenService:
        cfg = settings or get_settings()
        return cls(
            access_secret=cfg.access_token_secret,
            refresh_secret=cfg.refresh_token_secret,
            access_ttl_seconds=cfg.access_token_expire_seconds,
            refresh_ttl_seconds=cfg.refresh_token_expire_seconds,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, payload: TokenPayload) -> str:
        """Sign payload with the access secret; expires after access_ttl_seconds."""
        return self._encode(payload, ACCESS_TOKEN_TYPE, self._access_secret, self.access_ttl_seconds)

    def issue_refresh_token(self, payload: TokenPayload) -> str:
        """Sign payload with the refresh secret; expires after refresh_ttl_seconds."""
        return self._encode(payload, REFRESH_TOKEN_TYPE, self._refresh_secret, self.refresh_ttl_seconds)

    def issue_pair(self, payload: TokenPayload) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(payload),
            refresh_token=self.issue_refresh_token(payload),
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access_token(self, token: str | None) -> TokenPayload | None:
        return self._decode(token, ACCESS_TOKEN_TYPE, self._access_secret)

    def verify_refresh_token(self, token: str | None) -> TokenPayload | None:
        return self._decode(token, REFRESH_TOKEN_TYPE, self._refresh_secret)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(payload: TokenPayload, token_type: str, secret: str, ttl_seconds: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": payload.user_id,
            "email": payload.email,
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)

    @staticmethod
    def _decode(token: str | None, token_type: str, secret: str) -> TokenPayload | None:
        if not token:
            return None
        try:
            claims = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if claims.get("type") != token_type:
            return None
        user_id = claims.get("sub")
        email = claims.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str):
            return None
        return TokenPayload(user_id=user_id, email=email)
