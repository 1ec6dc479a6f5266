"""Pydantic schemas for user identity summaries.

Learn: UserSummary is the only shape a user ever leaves the API in —
password hashes and OAuth ids are not part of it, so they cannot leak
through task expansion or the assignee picker.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    avatar: Optional[str] = Field(default=None, validation_alias="avatar_url")

    model_config = {"from_attributes": True, "populate_by_name": True}
