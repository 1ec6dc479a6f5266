"""Task service — authorization-scoped queries and creator-only mutations.

Learn: Every read goes through the scope predicate:

    task.creator_id == me  OR  me ∈ task.assigned_to

and optional filters are AND-ed on top of it, only when the caller
provides them. There is no code path that lists tasks without the scope.

Mutations are stricter than reads: only the creator may update or delete.
Assignees see the task but get the same 404 as a stranger if they try
to change it — "doesn't exist" and "not yours" are never distinguished.

Concurrent updates to one task are last-write-wins; there is no version
check.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.db.models import Task, User, task_assignees, utcnow
from taskmate.errors import NotFoundOrUnauthorizedError, TaskValidationError
from taskmate.schemas.task import TaskCreate, TaskFilters, TaskUpdate
from taskmate.services.notifier import AssignmentNotifier, Recipient, TaskSnapshot
from taskmate.services.user_service import UserService

logger = structlog.get_logger()


def scope_predicate(user_id: uuid.UUID):
    """Tasks the user created or is assigned to."""
    assigned = select(task_assignees.c.task_id).where(
        task_assignees.c.user_id == user_id
    )
    return or_(Task.creator_id == user_id, Task.id.in_(assigned))


def contains_pattern(text: str) -> str:
    """LIKE pattern matching `text` anywhere, with wildcards taken literally."""
    escaped = text.replace("/", "//").replace("%", "/%").replace("_", "/_")
    return f"%{escaped}%"


def build_list_query(
    user_id: uuid.UUID,
    filters: TaskFilters,
    now: Optional[datetime] = None,
) -> Select:
    """Compose the listing query.

    Filters are applied conditionally; unknown status/dueDate values
    are ignored rather than rejected.
    """
    query = select(Task).where(scope_predicate(user_id))

    if filters.search:
        pattern = contains_pattern(filters.search)
        query = query.where(
            or_(
                Task.title.ilike(pattern, escape="/"),
                Task.description.ilike(pattern, escape="/"),
            )
        )

    if filters.status == "completed":
        query = query.where(Task.completed.is_(True))
    elif filters.status == "incomplete":
        query = query.where(Task.completed.is_(False))

    if filters.priority:
        query = query.where(Task.priority == filters.priority)

    if filters.due_date == "overdue":
        query = query.where(Task.due_date < (now or datetime.now(timezone.utc)))

    # Soonest due first, undated last; newest first among equals
    return query.order_by(
        Task.due_date.is_(None),
        Task.due_date.asc(),
        Task.created_at.desc(),
    )


class TaskService:
    """Business logic for task listing and CRUD."""

    def __init__(self, db: AsyncSession, notifier: Optional[AssignmentNotifier] = None):
        self.db = db
        self.users = UserService(db)
        self.notifier = notifier

    # ─── Read ────────────────────────────────────────────

    async def list_tasks(
        self,
        user_id: uuid.UUID,
        filters: Optional[TaskFilters] = None,
        now: Optional[datetime] = None,
    ) -> list[Task]:
        query = build_list_query(user_id, filters or TaskFilters(), now=now)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _load(self, task_id: uuid.UUID) -> Optional[Task]:
        """Fetch a task with creator/assignees freshly loaded."""
        result = await self.db.execute(
            select(Task)
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _owned_task(self, user_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.creator_id == user_id)
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundOrUnauthorizedError()
        return task

    # ─── Create ──────────────────────────────────────────

    async def create_task(self, user_id: uuid.UUID, body: TaskCreate) -> Task:
        """Create a task owned by `user_id` and notify assignees in the background."""
        title = (body.title or "").strip()
        if not title:
            raise TaskValidationError("Title is required")

        assignees = await self._resolve_assignees(body.assigned_to)

        task = Task(
            title=title,
            description=body.description or "",
            priority=body.priority,
            completed=body.completed,
            due_date=body.due_date,
            creator_id=user_id,
            assigned_to=assignees,
        )
        self.db.add(task)
        await self.db.commit()

        task = await self._load(task.id)
        logger.info(
            "tasks.created", task_id=str(task.id), assignees=len(task.assigned_to)
        )

        if task.assigned_to:
            self._schedule_notifications(task)
        return task

    def _schedule_notifications(self, task: Task) -> None:
        if self.notifier is None:
            return
        creator = Recipient(name=task.creator.name, email=task.creator.email)
        recipients = [Recipient(name=u.name, email=u.email) for u in task.assigned_to]
        snapshot = TaskSnapshot(
            title=task.title,
            description=task.description,
            priority=task.priority,
            due_date=task.due_date,
        )
        self.notifier.schedule(creator, recipients, snapshot)

    async def _resolve_assignees(self, user_ids: list[uuid.UUID]) -> list[User]:
        wanted = list(dict.fromkeys(user_ids))
        users = await self.users.get_many(wanted)
        if len(users) != len(wanted):
            raise TaskValidationError("Unknown user in assignedTo")
        by_id = {u.id: u for u in users}
        return [by_id[uid] for uid in wanted]

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self, user_id: uuid.UUID, task_id: uuid.UUID, body: TaskUpdate
    ) -> Task:
        """Merge the supplied fields onto a task the caller created."""
        task = await self._owned_task(user_id, task_id)
        sent = body.model_fields_set

        if "title" in sent:
            title = (body.title or "").strip()
            if not title:
                raise TaskValidationError("Title is required")
            task.title = title
        if "description" in sent:
            task.description = body.description or ""
        if "priority" in sent:
            if body.priority is None:
                raise TaskValidationError("Priority must be low, medium or high")
            task.priority = body.priority
        if "completed" in sent:
            if body.completed is None:
                raise TaskValidationError("Completed must be true or false")
            task.completed = body.completed
        if "due_date" in sent:
            task.due_date = body.due_date
        if "assigned_to" in sent:
            task.assigned_to = await self._resolve_assignees(body.assigned_to or [])

        if sent:
            task.updated_at = utcnow()
        await self.db.commit()
        logger.info("tasks.updated", task_id=str(task_id), fields=sorted(sent))
        return await self._load(task_id)

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, user_id: uuid.UUID, task_id: uuid.UUID) -> None:
        task = await self._owned_task(user_id, task_id)
        await self.db.delete(task)
        await self.db.commit()
        logger.info("tasks.deleted", task_id=str(task_id))
