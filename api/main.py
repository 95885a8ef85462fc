"""
api/main.py -- Builds the Taskboard FastAPI application.

Serve with:  uvicorn asgi:app

Request path, outermost first:
  log_requests           one INFO line per request, rejected ones included
  TrustedHostMiddleware  unknown Host header -> 400
  CORSMiddleware         credentialed CORS so the browser sends session cookies
  SlowAPIMiddleware      per-route limits declared with @limiter.limit
  routers                /api/auth/*, /api/tasks*, /api/health

Startup (lifespan) opens both stores on DATABASE_URL and assembles the
AuthService; shutdown disposes the engines. Error envelopes come from
api/errors.py.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi.middleware import SlowAPIMiddleware

from api.errors import register_error_handlers
from api.limiter import limiter
from api.models import HealthResponse
from api.routes.auth import router as auth_router
from api.routes.tasks import router as tasks_router
from auth.hashing import Hasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from tasks.store import TaskStore

VERSION = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskboard.api")

_settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting Taskboard %s (environment=%s)", VERSION, _settings.environment)
    user_store = UserStore(_settings.database_url)
    task_store = TaskStore(_settings.database_url)
    app.state.user_store = user_store
    app.state.task_store = task_store
    app.state.auth_service = AuthService(
        store=user_store,
        hasher=Hasher(rounds=_settings.bcrypt_rounds),
        tokens=TokenService.from_settings(_settings),
    )
    logger.info(
        "Sessions: access %ss, refresh %ss, secure cookies %s",
        _settings.access_token_expire_seconds,
        _settings.refresh_token_expire_seconds,
        _settings.cookies_secure,
    )
    try:
        yield
    finally:
        task_store.close()
        user_store.close()
        logger.info("Taskboard stopped")


app = FastAPI(
    title="Taskboard API",
    description="Kanban task board with cookie-based access/refresh sessions.",
    version=VERSION,
    lifespan=lifespan,
)

# Starlette wraps later registrations around earlier ones, so the last
# add_middleware call is the outermost layer.
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=600,
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d (%.1f ms) [%s]",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
    )
    return response


app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(tasks_router, prefix="/api", tags=["Tasks"])


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness plus a database round trip. Not rate-limited."""
    try:
        database = "ok" if request.app.state.user_store.ping() else "error"
    except Exception:
        logger.exception("Health check: database ping failed")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
