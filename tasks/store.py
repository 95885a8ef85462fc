"""
tasks/store.py -- SQLAlchemy-backed persistence layer for Taskboard tasks.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tasks/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

Ownership: every read and write takes the caller's user_id and includes it in
the WHERE clause. A task owned by someone else is indistinguishable from a
missing one, so routes answer 404 rather than 403 and leak nothing.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TaskStore("sqlite:///:memory:")
    task = store.create_task(Task(user_id=uid, title="Write report"))
    page = store.list_tasks(uid, TaskFilter(status="TODO"))
    store.toggle_status(task.id, uid)
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Column, MetaData, String, Table, Text, case, func, select
from sqlalchemy.engine import Engine

from core.db import make_engine
from tasks.models import NEXT_STATUS, Task, TaskFilter, TaskPage

logger = logging.getLogger("taskboard.tasks")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="TODO"),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("due_date", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_UPDATABLE_FIELDS = frozenset({"title", "description", "status", "priority", "due_date"})

# Priority sorts by rank, not alphabetically.
_PRIORITY_RANK = case(
    {"low": 1, "medium": 2, "high": 3},
    value=_tasks.c.priority,
    else_=0,
)

_SORT_COLUMNS = {
    "createdAt": _tasks.c.created_at,
    "dueDate": _tasks.c.due_date,
    "priority": _PRIORITY_RANK,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def create_task(self, task: Task) -> Task:
        """Insert a new task and return it with id and timestamps assigned."""
        now = _now_iso()
        task.id = str(uuid4())
        task.created_at = now
        task.updated_at = now
        with self.engine.connect() as conn:
            conn.execute(
                _tasks.insert().values(
                    id=task.id,
                    user_id=task.user_id,
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    priority=task.priority,
                    due_date=task.due_date,
                    created_at=task.created_at,
                    updated_at=task.updated_at,
                )
            )
            conn.commit()
        logger.info("Task %s created for user %s", task.id, task.user_id)
        return task

    def get_task(self, task_id: str, user_id: str) -> Optional[Task]:
        """Return the task if it exists and belongs to user_id, else None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _tasks.select().where((_tasks.c.id == task_id) & (_tasks.c.user_id == user_id))
            ).fetchone()
        return _row_to_task(row) if row is not None else None

    def list_tasks(self, user_id: str, query: TaskFilter) -> TaskPage:
        """Return one page of the user's tasks matching query.

        search is a case-insensitive substring match on title. Unknown
        sort_by values fall back to createdAt. dueDate compares the stored UTC
        timestamps; tasks without a due date come last in either direction.
        Ties are broken by id so pagination is stable.
        """
        conditions = [_tasks.c.user_id == user_id]
        if query.status:
            conditions.append(_tasks.c.status == query.status)
        if query.priority:
            conditions.append(_tasks.c.priority == query.priority)
        if query.search:
            conditions.append(func.lower(_tasks.c.title, type_=String).contains(query.search.lower(), autoescape=True))

        sort_column = _SORT_COLUMNS.get(query.sort_by, _tasks.c.created_at)
        order = sort_column.asc() if query.sort_order == "asc" else sort_column.desc()
        ordering = [order, _tasks.c.id]
        if query.sort_by == "dueDate":
            # False sorts before True, so undated rows trail.
            ordering.insert(0, _tasks.c.due_date.is_(None))
        offset = (query.page - 1) * query.limit

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_tasks).where(*conditions)).scalar() or 0
            rows = conn.execute(
                _tasks.select().where(*conditions).order_by(*ordering).offset(offset).limit(query.limit)
            ).fetchall()
        return TaskPage(
            tasks=[_row_to_task(r) for r in rows],
            page=query.page,
            limit=query.limit,
            total=total,
        )

    def update_task(self, task_id: str, user_id: str, **fields) -> Optional[Task]:
        """Apply a partial update. Returns the updated task, or None if not found.

        Accepted fields: title, description, status, priority, due_date.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.update()
                .where((_tasks.c.id == task_id) & (_tasks.c.user_id == user_id))
                .values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_task(task_id, user_id)

    def toggle_status(self, task_id: str, user_id: str) -> Optional[Task]:
        """Advance the task one step along TODO -> IN_PROGRESS -> COMPLETED -> TODO."""
        task = self.get_task(task_id, user_id)
        if task is None:
            return None
        return self.update_task(task_id, user_id, status=NEXT_STATUS.get(task.status, "TODO"))

    def delete_task(self, task_id: str, user_id: str) -> bool:
        """Delete the task. Returns True if deleted, False if not found or not owned."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.delete().where((_tasks.c.id == task_id) & (_tasks.c.user_id == user_id))
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description,
        status=row.status,
        priority=row.priority,
        due_date=row.due_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
