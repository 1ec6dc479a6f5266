"""Pydantic schemas for tasks.

Learn: Separate schemas for create/update/read keeps the API clean.
- TaskCreate: what you POST to create a task (no creator field — the
  creator is always the authenticated caller)
- TaskUpdate: what you PUT to modify a task. Only fields the client
  actually sent are applied (model_fields_set), and only these six
  fields exist, so id/creator can never be overwritten.
- TaskRead: what the API returns, with creator/assignees expanded
- TaskFilters: the optional query-string predicates for listing

JSON uses camelCase (dueDate, assignedTo, createdAt); snake_case is
accepted on input too.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskmate.schemas.user import UserSummary

Priority = Literal["low", "medium", "high"]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _TaskBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    due_date: Optional[datetime] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _blank_due_date(cls, value):
        # Date pickers send "" when cleared
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("due_date", mode="after")
    @classmethod
    def _due_date_utc(cls, value):
        return as_utc(value)


class TaskCreate(_TaskBody):
    title: str = ""
    description: Optional[str] = ""
    priority: Priority = "medium"
    completed: bool = False
    assigned_to: list[uuid.UUID] = Field(default_factory=list)


class TaskUpdate(_TaskBody):
    """Partial update — only fields present in the request body are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    assigned_to: Optional[list[uuid.UUID]] = None


class TaskRead(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: uuid.UUID
    title: str
    description: str
    priority: str
    completed: bool
    due_date: Optional[datetime]
    creator: UserSummary
    assigned_to: list[UserSummary]
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)


class TaskFilters(BaseModel):
    """Optional listing predicates, AND-combined (search ORs title/description)."""

    search: Optional[str] = None
    status: Optional[str] = None  # "completed" | "incomplete"; anything else ignored
    priority: Optional[str] = None
    due_date: Optional[str] = None  # "overdue"; anything else ignored


class MessageResponse(BaseModel):
    message: str
