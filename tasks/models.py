"""
tasks/models.py -- Domain dataclasses for the Taskboard task list.

Pure data containers. Filtering, pagination and the status cycle live in
tasks/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional

STATUSES = ("TODO", "IN_PROGRESS", "COMPLETED")
PRIORITIES = ("low", "medium", "high")

# Toggle cycles a card one column to the right on the board, wrapping around.
NEXT_STATUS: dict[str, str] = {
    "TODO": "IN_PROGRESS",
    "IN_PROGRESS": "COMPLETED",
    "COMPLETED": "TODO",
}


@dataclass
class Task:
    """A single card on a user's board.

    user_id is the owner; every store query is scoped by it.
    id is None before the record is written to the database.
    """

    user_id: str
    title: str
    id: Optional[str] = None
    description: Optional[str] = None
    status: str = "TODO"
    priority: str = "medium"
    due_date: Optional[str] = None  # ISO 8601
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class TaskFilter:
    """List query for TaskStore.list_tasks(). None means "no filter"."""

    status: Optional[str] = None
    priority: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    page: int = 1
    limit: int = 10


@dataclass
class TaskPage:
    tasks: list[Task] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + len(self.tasks) < self.total
