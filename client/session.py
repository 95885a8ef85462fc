"""
client/session.py -- Python client for the Taskboard API with session keep-alive.

The server is the source of truth for "logged in": it lives in the two
http-only cookies, which the underlying httpx.Client stores and replays.
SessionClient.user is only a local cache of the last answer the server gave:

  register / login success  -> cache the returned user
  me                        -> cache the user, or clear on authenticated=false
  logout                    -> always clear, even if the request fails
  refresh failure           -> clear

Keep-alive: the access token lives 15 minutes, so start_auto_refresh() calls
POST /auth/refresh every 14 minutes on a daemon timer while a user is cached.
This is cooperative and proactive; a failed request never triggers a refresh.

Usage:
    client = SessionClient("http://localhost:8000")
    ok, error = client.login("a@b.com", "secret1")
    client.start_auto_refresh()
    client.create_task("Write report", priority="high")
    client.logout()
    client.close()

Tests pass a Starlette TestClient as http_client, since it is an httpx.Client.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import httpx

logger = logging.getLogger("taskboard.client")

DEFAULT_REFRESH_INTERVAL = 14 * 60  # seconds; below the 15-minute access lifetime
DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    """Raised by the task helpers when the server answers with an error envelope."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return fallback


class SessionClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http_client: Optional[httpx.Client] = None,
        api_prefix: str = "/api",
    ) -> None:
        self._http = http_client or httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)
        self._owns_http = http_client is None
        self._prefix = api_prefix.rstrip("/")
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._interval = DEFAULT_REFRESH_INTERVAL
        self.user: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: Optional[str] = None) -> tuple[bool, Optional[str]]:
        try:
            resp = self._post("/auth/register", json={"email": email, "password": password, "name": name})
        except httpx.HTTPError:
            return False, "Network error"
        if resp.is_success:
            self.user = resp.json()["user"]
            return True, None
        return False, _error_message(resp, "Registration failed")

    def login(self, email: str, password: str) -> tuple[bool, Optional[str]]:
        try:
            resp = self._post("/auth/login", json={"email": email, "password": password})
        except httpx.HTTPError:
            return False, "Network error"
        if resp.is_success:
            self.user = resp.json()["user"]
            return True, None
        return False, _error_message(resp, "Login failed")

    def me(self) -> Optional[dict]:
        """Ask the server who we are and cache the answer."""
        try:
            resp = self._http.get(f"{self._prefix}/auth/me")
            data = resp.json()
        except (httpx.HTTPError, ValueError):
            self.user = None
            return None
        self.user = data.get("user") if data.get("authenticated") else None
        return self.user

    def refresh(self) -> bool:
        """Rotate the session cookies. On success re-query me(); on failure drop the cache."""
        try:
            resp = self._post("/auth/refresh")
        except httpx.HTTPError:
            self.user = None
            return False
        if resp.is_success:
            self.me()
            return True
        logger.info("Session refresh rejected: %s", _error_message(resp, "refresh failed"))
        self.user = None
        return False

    def logout(self) -> None:
        self.stop_auto_refresh()
        try:
            self._post("/auth/logout")
        except httpx.HTTPError:
            logger.warning("Logout request failed; local session cleared anyway")
        finally:
            self.user = None

    # ------------------------------------------------------------------
    # Keep-alive
    # ------------------------------------------------------------------

    def start_auto_refresh(self, interval: float = DEFAULT_REFRESH_INTERVAL) -> None:
        """Refresh every interval seconds while a user is cached."""
        with self._lock:
            self._interval = interval
            self._schedule()

    def stop_auto_refresh(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(self._interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        if self.user is None:
            self.stop_auto_refresh()
            return
        self.refresh()
        with self._lock:
            if self.user is not None and self._timer is not None:
                self._schedule()
            else:
                self._timer = None

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self, page: int = 1, limit: int = 10, **filters: Any) -> dict:
        """Return {tasks, pagination}. filters: status, priority, search, sortBy, sortOrder.

        "ALL" (the board's no-filter value) and None are dropped.
        """
        params: dict[str, Any] = {"page": page, "limit": limit}
        params.update({k: v for k, v in filters.items() if v not in (None, "", "ALL")})
        return self._checked(self._http.get(f"{self._prefix}/tasks", params=params), "Failed to fetch tasks")

    def create_task(self, title: str, **fields: Any) -> dict:
        body = {"title": title, **fields}
        return self._checked(self._post("/tasks", json=body), "Failed to create task")["task"]

    def get_task(self, task_id: str) -> dict:
        return self._checked(self._http.get(f"{self._prefix}/tasks/{task_id}"), "Failed to get task")["task"]

    def update_task(self, task_id: str, **fields: Any) -> dict:
        resp = self._http.patch(f"{self._prefix}/tasks/{task_id}", json=fields)
        return self._checked(resp, "Failed to update task")["task"]

    def delete_task(self, task_id: str) -> None:
        self._checked(self._http.delete(f"{self._prefix}/tasks/{task_id}"), "Failed to delete task")

    def toggle_task(self, task_id: str) -> dict:
        return self._checked(self._post(f"/tasks/{task_id}/toggle"), "Failed to toggle task status")["task"]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _post(self, path: str, json: Optional[dict] = None) -> httpx.Response:
        return self._http.post(f"{self._prefix}{path}", json=json)

    @staticmethod
    def _checked(resp: httpx.Response, fallback: str) -> dict:
        if not resp.is_success:
            raise ApiError(resp.status_code, _error_message(resp, fallback))
        return resp.json()

    def close(self) -> None:
        self.stop_auto_refresh()
        if self._owns_http:
            self._http.close()
