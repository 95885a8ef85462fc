"""
tests/conftest.py -- Shared test fixtures for Taskboard integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + tasks
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - app_client: one TestClient per test module, real routes, test stores
  - client: the module's TestClient with an empty cookie jar for each test
  - register_user: registers a fresh account through the API and returns its credentials

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any core/auth/api import so get_settings()
sees it on first (cached) call:
  DEBUG=true          -- auto-generate the two token secrets
  BCRYPT_ROUNDS=4     -- bcrypt's minimum cost keeps the suite fast
  RATE_LIMIT_ENABLED  -- off, the suite logs in far more than 10 times a minute
  ALLOWED_HOSTS       -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.hashing import Hasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from tasks.store import TaskStore

TEST_PASSWORD = "secret1"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   never share state.
    """
    db_url = f"sqlite:///file:test_taskboard_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url), TaskStore(db_url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return an async context manager that replaces the real lifespan.

    Mirrors api.main.lifespan but uses the pre-created test stores.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.auth_service = AuthService(
            store=user_store,
            hasher=Hasher(rounds=settings.bcrypt_rounds),
            tokens=TokenService.from_settings(settings),
        )
        yield

    return test_lifespan


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def app_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated in-memory stores.

    The database name is derived from the test module so modules do not
    see each other's users or tasks.
    """
    user_store, task_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    app.router.lifespan_context = _patch_lifespan(user_store, task_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    task_store.close()
    user_store.close()


@pytest.fixture
def client(app_client: TestClient) -> Generator[TestClient, None, None]:
    """The module's TestClient, starting each test with no session cookies."""
    app_client.cookies.clear()
    yield app_client
    app_client.cookies.clear()


@pytest.fixture
def register_user(client: TestClient) -> Callable[..., dict]:
    """Register a new account via POST /api/auth/register.

    Returns {"email", "password", "user"}; the client holds the new session
    cookies afterwards.
    """

    def _register(email: str | None = None, password: str = TEST_PASSWORD, name: str | None = None) -> dict:
        email = email or unique_email()
        resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        return {"email": email, "password": password, "user": resp.json()["user"]}

    return _register
