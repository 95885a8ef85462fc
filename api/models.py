"""
API request and response models for the Taskboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py and tasks/models.py, which
own the internal domain representation. Route handlers map between the two.

Auth request bodies are deliberately loose (plain optional strings): the
AuthService owns credential validation so that every malformed credential
comes back as the same 400 envelope with a human-readable message.

JSON field names follow the browser client (camelCase: createdAt, dueDate,
totalPages); Python attributes stay snake_case via aliases.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PublicUser
from tasks.models import Task, TaskPage

_CAMEL = ConfigDict(populate_by_name=True, frozen=True)


def _check_due_date(value: Optional[str]) -> Optional[str]:
    """Accept an ISO 8601 date or datetime; empty means no due date.

    Stored as a UTC timestamp, e.g. "2030-05-01T00:00:00+00:00", so the
    dueDate sort is chronological. A bare date or naive time is read as UTC.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)  # raises ValueError -> 400 validation_error
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    """Public user projection. createdAt only appears on /auth/me."""

    model_config = _CAMEL

    id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserOut":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AuthUserResponse(BaseModel):
    """Response for POST /auth/register and POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserOut


class MeResponse(BaseModel):
    """Response for GET /auth/me. user is null when not authenticated."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    user: Optional[UserOut] = None


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskStatusEnum(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class TaskPriorityEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskSortEnum(str, Enum):
    createdAt = "createdAt"
    dueDate = "dueDate"
    priority = "priority"


class SortOrderEnum(str, Enum):
    asc = "asc"
    desc = "desc"


class TaskCreate(BaseModel):
    """Request body for POST /api/tasks."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: TaskStatusEnum = TaskStatusEnum.TODO
    priority: TaskPriorityEnum = TaskPriorityEnum.medium
    due_date: Optional[str] = Field(default=None, alias="dueDate")

    @field_validator("description")
    @classmethod
    def empty_description_is_null(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("due_date")
    @classmethod
    def valid_due_date(cls, value: Optional[str]) -> Optional[str]:
        return _check_due_date(value)


class TaskUpdate(BaseModel):
    """Request body for PATCH /api/tasks/{id}. Omitted fields are left untouched."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[TaskStatusEnum] = None
    priority: Optional[TaskPriorityEnum] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")

    @field_validator("description")
    @classmethod
    def empty_description_is_null(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("due_date")
    @classmethod
    def valid_due_date(cls, value: Optional[str]) -> Optional[str]:
        return _check_due_date(value)


class TaskOut(BaseModel):
    model_config = _CAMEL

    id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: Optional[str] = Field(alias="dueDate")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @classmethod
    def from_task(cls, task: Task) -> "TaskOut":
        """Factory Method -- the mapping lives beside the output model."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: TaskOut


class Pagination(BaseModel):
    model_config = _CAMEL

    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")
    has_more: bool = Field(alias="hasMore")


class TaskListResponse(BaseModel):
    """Response for GET /api/tasks."""

    model_config = ConfigDict(frozen=True)

    tasks: list[TaskOut]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: TaskPage) -> "TaskListResponse":
        return cls(
            tasks=[TaskOut.from_task(t) for t in page.tasks],
            pagination=Pagination(
                page=page.page,
                limit=page.limit,
                total=page.total,
                total_pages=page.total_pages,
                has_more=page.has_more,
            ),
        )
