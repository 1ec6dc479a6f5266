"""Todo API routes.

Learn: These routes are the HTTP interface to TaskService. The service
enforces scoping and ownership; routes translate HTTP to service calls.

Key patterns:
- The acting user always comes from the session guard, never the body
- Query params for filtering (search, status, priority, dueDate)
- A malformed id gets the same 404 as a missing or foreign task
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.auth.dependencies import CurrentIdentity, get_current_user
from taskmate.db.engine import get_db
from taskmate.errors import NotFoundOrUnauthorizedError
from taskmate.schemas.task import (
    MessageResponse,
    TaskCreate,
    TaskFilters,
    TaskRead,
    TaskUpdate,
)
from taskmate.services.notifier import AssignmentNotifier, get_notifier
from taskmate.services.task_service import TaskService

router = APIRouter()


def _task_svc(
    db: AsyncSession = Depends(get_db),
    notifier: AssignmentNotifier = Depends(get_notifier),
) -> TaskService:
    return TaskService(db, notifier=notifier)


def _task_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise NotFoundOrUnauthorizedError()


@router.get("/todos", response_model=list[TaskRead])
async def list_todos(
    search: Optional[str] = Query(None, description="Case-insensitive title/description match"),
    status: Optional[str] = Query(None, description="completed | incomplete"),
    priority: Optional[str] = Query(None, description="low | medium | high"),
    due_date: Optional[str] = Query(None, alias="dueDate", description="overdue"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """List tasks the caller created or is assigned to."""
    filters = TaskFilters(
        search=search, status=status, priority=priority, due_date=due_date
    )
    return await svc.list_tasks(identity.user_uuid, filters)


@router.post("/todos", response_model=TaskRead, status_code=201)
async def create_todo(
    body: TaskCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Create a task owned by the caller. Assignees are emailed in the background."""
    return await svc.create_task(identity.user_uuid, body)


@router.put("/todos/{task_id}", response_model=TaskRead)
async def update_todo(
    task_id: str,
    body: TaskUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task. Creator only."""
    return await svc.update_task(identity.user_uuid, _task_id(task_id), body)


@router.delete("/todos/{task_id}", response_model=MessageResponse)
async def delete_todo(
    task_id: str,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """Delete a task permanently. Creator only."""
    await svc.delete_task(identity.user_uuid, _task_id(task_id))
    return MessageResponse(message="Todo deleted")
