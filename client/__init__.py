"""client/ -- Python client for the Taskboard HTTP API."""

from client.session import ApiError, SessionClient

__all__ = ["ApiError", "SessionClient"]
