"""
api/routes/tasks.py -- Task board routes for the Taskboard REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /tasks                 -- filtered, sorted, paginated list
  POST   /tasks                 -- create
  GET    /tasks/{task_id}       -- detail
  PATCH  /tasks/{task_id}       -- partial update
  DELETE /tasks/{task_id}       -- delete
  POST   /tasks/{task_id}/toggle -- advance status one column

The only thing these routes take from the auth core is the verified user id
(get_current_user_id). Every store call is scoped by it, so another user's
task id answers 404 exactly like a missing one.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import (
    MessageResponse,
    SortOrderEnum,
    TaskCreate,
    TaskListResponse,
    TaskOut,
    TaskPriorityEnum,
    TaskResponse,
    TaskSortEnum,
    TaskStatusEnum,
    TaskUpdate,
)
from auth.dependencies import get_current_user_id
from tasks.models import Task, TaskFilter
from tasks.store import TaskStore

router = APIRouter()


def _task_store(request: Request) -> TaskStore:
    return request.app.state.task_store


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Task not found"})


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: Optional[TaskStatusEnum] = None,
    priority: Optional[TaskPriorityEnum] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    sort_by: TaskSortEnum = Query(default=TaskSortEnum.createdAt, alias="sortBy"),
    sort_order: SortOrderEnum = Query(default=SortOrderEnum.desc, alias="sortOrder"),
) -> TaskListResponse:
    """Return one page of the caller's tasks."""
    query = TaskFilter(
        status=status.value if status else None,
        priority=priority.value if priority else None,
        search=search.strip() if search and search.strip() else None,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
        page=page,
        limit=limit,
    )
    return TaskListResponse.from_page(_task_store(request).list_tasks(user_id, query))


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    user_id: str = Depends(get_current_user_id),
) -> TaskResponse:
    task = _task_store(request).create_task(
        Task(
            user_id=user_id,
            title=body.title,
            description=body.description,
            status=body.status.value,
            priority=body.priority.value,
            due_date=body.due_date,
        )
    )
    return TaskResponse(task=TaskOut.from_task(task))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: str, user_id: str = Depends(get_current_user_id)) -> TaskResponse:
    task = _task_store(request).get_task(task_id, user_id)
    if task is None:
        raise _not_found()
    return TaskResponse(task=TaskOut.from_task(task))


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: str,
    body: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
) -> TaskResponse:
    """Apply only the fields present in the body.

    An explicit null clears description or dueDate. title, status and
    priority cannot be nulled.
    """
    store = _task_store(request)
    if store.get_task(task_id, user_id) is None:
        raise _not_found()

    updates = body.model_dump(exclude_unset=True)
    for required in ("title", "status", "priority"):
        if required in updates and updates[required] is None:
            raise HTTPException(
                status_code=400,
                detail={"code": "validation_error", "message": f"{required.capitalize()} cannot be empty"},
            )
    for key in ("status", "priority"):
        if key in updates:
            updates[key] = updates[key].value

    task = store.update_task(task_id, user_id, **updates) if updates else store.get_task(task_id, user_id)
    if task is None:
        raise _not_found()
    return TaskResponse(task=TaskOut.from_task(task))


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
def delete_task(request: Request, task_id: str, user_id: str = Depends(get_current_user_id)) -> MessageResponse:
    if not _task_store(request).delete_task(task_id, user_id):
        raise _not_found()
    return MessageResponse(message="Task deleted successfully")


@router.post("/tasks/{task_id}/toggle", response_model=TaskResponse)
def toggle_task(request: Request, task_id: str, user_id: str = Depends(get_current_user_id)) -> TaskResponse:
    """Advance status TODO -> IN_PROGRESS -> COMPLETED -> TODO."""
    task = _task_store(request).toggle_status(task_id, user_id)
    if task is None:
        raise _not_found()
    return TaskResponse(task=TaskOut.from_task(task))
