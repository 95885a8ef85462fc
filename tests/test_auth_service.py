"""Unit tests for auth/service.py -- AuthService transitions without HTTP.

Covers:
- classify() maps every cookie combination onto one of the four session states
- register()/login() tagged results, email normalization, enumeration resistance
- refresh() rotation and each failure branch with its cookie directive
- the concurrent-refresh race: last writer wins, the other caller is locked out
- a refresh token that was issued but never recorded fails closed
- logout() succeeds even when the store raises
- me() and logout() only act on ACCESS_VALID
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.hashing import Hasher
from auth.models import AuthFailure, AuthSuccess, ErrorKind, SessionCookies, SessionState, TokenPayload
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "r" * 32


class _StaleReadStore(UserStore):
    """UserStore whose find_by_id can be pinned to an earlier snapshot.

    Simulates a second refresh request that read the user row before the
    first request wrote its new refresh hash.
    """

    snapshot = None

    def find_by_id(self, user_id):
        if self.snapshot is not None:
            return self.snapshot
        return super().find_by_id(user_id)


@pytest.fixture
def store():
    s = _StaleReadStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store) -> AuthService:
    return AuthService(store=store, hasher=Hasher(rounds=4), tokens=TokenService(ACCESS_SECRET, REFRESH_SECRET))


def _login(service: AuthService, email: str = "a@b.com", password: str = "secret1") -> AuthSuccess:
    service.register(email, password)
    result = service.login(email, password)
    assert isinstance(result, AuthSuccess)
    return result


def _expired_access_token(user_id: str, email: str) -> str:
    past = datetime.now(timezone.utc) - timedelta(seconds=5)
    return jwt.encode({"sub": user_id, "email": email, "type": "access", "exp": past}, ACCESS_SECRET, algorithm="HS256")


class TestClassify:
    def test_no_cookies_is_anonymous(self, service: AuthService) -> None:
        assert service.classify(SessionCookies()) is SessionState.ANONYMOUS

    def test_valid_access_token(self, service: AuthService) -> None:
        tokens = _login(service).tokens
        cookies = SessionCookies(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
        assert service.classify(cookies) is SessionState.ACCESS_VALID

    def test_expired_access_with_valid_refresh(self, service: AuthService) -> None:
        result = _login(service)
        cookies = SessionCookies(
            access_token=_expired_access_token(result.user.id, result.user.email),
            refresh_token=result.tokens.refresh_token,
        )
        assert service.classify(cookies) is SessionState.ACCESS_EXPIRED_REFRESH_VALID

    def test_missing_access_with_valid_refresh(self, service: AuthService) -> None:
        tokens = _login(service).tokens
        assert service.classify(SessionCookies(refresh_token=tokens.refresh_token)) is (
            SessionState.ACCESS_EXPIRED_REFRESH_VALID
        )

    def test_garbage_cookies_are_invalid(self, service: AuthService) -> None:
        cookies = SessionCookies(access_token="junk", refresh_token="also.junk")
        assert service.classify(cookies) is SessionState.INVALID


class TestRegisterAndLogin:
    def test_register_stores_normalized_email_and_hashes(self, service: AuthService, store) -> None:
        result = service.register("  Mixed@Case.COM ", "secret1", "Ann")
        assert isinstance(result, AuthSuccess)
        assert result.user.email == "mixed@case.com"
        assert result.user.created_at is None

        stored = store.find_by_email("mixed@case.com")
        assert stored.password_hash != "secret1"
        assert service.hasher.verify("secret1", stored.password_hash)
        assert service.hasher.verify(result.tokens.refresh_token, stored.refresh_token_hash)

    def test_duplicate_is_conflict(self, service: AuthService) -> None:
        service.register("a@b.com", "secret1")
        result = service.register("A@B.com", "secret2")
        assert isinstance(result, AuthFailure)
        assert result.kind is ErrorKind.CONFLICT

    @pytest.mark.parametrize(
        "email,password,message",
        [
            (None, "secret1", "Email and password are required"),
            ("a@b.com", "", "Email and password are required"),
            ("a@b", "secret1", "Invalid email format"),
            ("a b@c.com", "secret1", "Invalid email format"),
            ("a@b.com", "12345", "Password must be at least 6 characters"),
        ],
    )
    def test_register_validation(self, service: AuthService, email, password, message) -> None:
        result = service.register(email, password)
        assert isinstance(result, AuthFailure)
        assert result.kind is ErrorKind.VALIDATION
        assert result.message == message

    def test_login_replaces_stored_refresh_hash(self, service: AuthService, store) -> None:
        first = service.register("a@b.com", "secret1")
        second = service.login("a@b.com", "secret1")
        stored = store.find_by_email("a@b.com")
        assert not service.hasher.verify(first.tokens.refresh_token, stored.refresh_token_hash)
        assert service.hasher.verify(second.tokens.refresh_token, stored.refresh_token_hash)

    def test_login_failures_share_one_message(self, service: AuthService) -> None:
        service.register("a@b.com", "secret1")
        wrong = service.login("a@b.com", "wrong-password")
        unknown = service.login("nobody@b.com", "secret1")
        assert wrong == unknown
        assert wrong.kind is ErrorKind.UNAUTHORIZED
        assert wrong.message == "Invalid email or password"
        assert wrong.clear_cookies is False


class TestRefresh:
    def test_refresh_issues_new_pair(self, service: AuthService) -> None:
        tokens = _login(service).tokens
        result = service.refresh(SessionCookies(refresh_token=tokens.refresh_token))
        assert isinstance(result, AuthSuccess)
        assert result.message == "Tokens refreshed successfully"
        assert result.tokens.access_token != tokens.access_token
        assert result.tokens.refresh_token != tokens.refresh_token
        assert result.user is None

    def test_missing_cookie_does_not_clear(self, service: AuthService) -> None:
        result = service.refresh(SessionCookies())
        assert result == AuthFailure(ErrorKind.UNAUTHORIZED, "Refresh token not found", clear_cookies=False)

    def test_invalid_signature_clears(self, service: AuthService) -> None:
        tokens = _login(service).tokens
        # An access token is signed with the other secret.
        result = service.refresh(SessionCookies(refresh_token=tokens.access_token))
        assert result.message == "Invalid or expired refresh token"
        assert result.clear_cookies is True

    def test_deleted_session_clears(self, service: AuthService, store) -> None:
        result = _login(service)
        store.update(result.user.id, refresh_token_hash=None)
        outcome = service.refresh(SessionCookies(refresh_token=result.tokens.refresh_token))
        assert outcome.message == "User not found or session expired"
        assert outcome.clear_cookies is True

    def test_superseded_token_clears(self, service: AuthService) -> None:
        tokens = _login(service).tokens
        service.refresh(SessionCookies(refresh_token=tokens.refresh_token))
        replay = service.refresh(SessionCookies(refresh_token=tokens.refresh_token))
        assert replay == AuthFailure(ErrorKind.UNAUTHORIZED, "Invalid refresh token", clear_cookies=True)

    def test_unrecorded_token_fails_closed(self, service: AuthService) -> None:
        """A validly signed token whose hash never reached the store is refused."""
        result = _login(service)
        orphan = service.tokens.issue_refresh_token(TokenPayload(user_id=result.user.id, email=result.user.email))
        outcome = service.refresh(SessionCookies(refresh_token=orphan))
        assert isinstance(outcome, AuthFailure)
        assert outcome.message == "Invalid refresh token"

    def test_concurrent_refresh_last_writer_wins(self, service: AuthService, store) -> None:
        """Two refreshes with the same token both pass the hash check when the
        second read the row before the first wrote. Only the later pair survives.
        """
        result = _login(service)
        presented = SessionCookies(refresh_token=result.tokens.refresh_token)

        store.snapshot = store.find_by_id(result.user.id)
        first = service.refresh(presented)
        second = service.refresh(presented)
        store.snapshot = None

        assert isinstance(first, AuthSuccess)
        assert isinstance(second, AuthSuccess)

        loser = service.refresh(SessionCookies(refresh_token=first.tokens.refresh_token))
        assert isinstance(loser, AuthFailure)
        assert loser.message == "Invalid refresh token"

        winner = service.refresh(SessionCookies(refresh_token=second.tokens.refresh_token))
        assert isinstance(winner, AuthSuccess)


class TestLogoutAndMe:
    def test_logout_clears_stored_hash(self, service: AuthService, store) -> None:
        result = _login(service)
        outcome = service.logout(SessionCookies(access_token=result.tokens.access_token))
        assert outcome == AuthSuccess(message="Logout successful", clear_cookies=True)
        assert store.find_by_id(result.user.id).refresh_token_hash is None

    def test_logout_without_cookies(self, service: AuthService) -> None:
        assert service.logout(SessionCookies()).clear_cookies is True

    def test_logout_swallows_store_errors(self, service: AuthService, store, monkeypatch) -> None:
        result = _login(service)

        def _boom(*args, **kwargs):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr(store, "update", _boom)
        outcome = service.logout(SessionCookies(access_token=result.tokens.access_token))
        assert isinstance(outcome, AuthSuccess)
        assert outcome.clear_cookies is True

    def test_me_includes_created_at(self, service: AuthService) -> None:
        result = _login(service)
        info = service.me(SessionCookies(access_token=result.tokens.access_token))
        assert info.authenticated is True
        assert info.user.email == "a@b.com"
        assert info.user.created_at

    def test_me_for_vanished_user(self, service: AuthService) -> None:
        token = service.tokens.issue_access_token(TokenPayload(user_id="missing", email="x@y.com"))
        info = service.me(SessionCookies(access_token=token))
        assert info.authenticated is False
        assert info.user is None

    def test_me_with_expired_access(self, service: AuthService) -> None:
        result = _login(service)
        token = _expired_access_token(result.user.id, result.user.email)
        assert service.me(SessionCookies(access_token=token)).authenticated is False

    def test_me_with_only_a_live_refresh_token(self, service: AuthService) -> None:
        """ACCESS_EXPIRED_REFRESH_VALID is not authenticated until the client refreshes."""
        result = _login(service)
        cookies = SessionCookies(refresh_token=result.tokens.refresh_token)
        assert service.classify(cookies) is SessionState.ACCESS_EXPIRED_REFRESH_VALID
        assert service.me(cookies).authenticated is False

        refreshed = service.refresh(cookies)
        assert isinstance(refreshed, AuthSuccess)
        assert service.me(SessionCookies(access_token=refreshed.tokens.access_token)).authenticated is True

    def test_logout_with_expired_access_keeps_stored_hash(self, service: AuthService, store) -> None:
        result = _login(service)
        cookies = SessionCookies(
            access_token=_expired_access_token(result.user.id, result.user.email),
            refresh_token=result.tokens.refresh_token,
        )
        outcome = service.logout(cookies)
        assert outcome.clear_cookies is True
        assert store.find_by_id(result.user.id).refresh_token_hash is not None

    def test_current_user_id(self, service: AuthService) -> None:
        result = _login(service)
        assert service.current_user_id(result.tokens.access_token) == result.user.id
        assert service.current_user_id(result.tokens.refresh_token) is None
        assert service.current_user_id(None) is None
