from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

ReminderStatus = Literal["pending", "completed", "overdue"]
ReminderPriority = Literal["low", "medium", "high"]


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class ReminderCreate(BaseModel):
    lead_id: UUID
    title: str = Field(min_length=1)
    description: str | None = None
    due_date: datetime
    priority: ReminderPriority = "medium"
    assigned_to: str = Field(min_length=1)
    notify_before: int = Field(default=0, ge=0)

    strip_title = field_validator("title", mode="before")(_strip)


class ReminderUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    due_date: datetime | None = None
    priority: ReminderPriority | None = None
    assigned_to: str | None = Field(default=None, min_length=1)
    notify_before: int | None = Field(default=None, ge=0)

    strip_title = field_validator("title", mode="before")(_strip)


class ReminderStatusUpdate(BaseModel):
    status: ReminderStatus


class ReminderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    title: str
    description: str | None
    due_date: datetime
    status: ReminderStatus
    priority: ReminderPriority
    assigned_to: str
    created_by: str
    notify_before: int
    completed_at: datetime | None
    completed_by: str | None
    created_at: datetime
    updated_at: datetime
    display_status: ReminderStatus | None = None


class BadgeRead(BaseModel):
    user_id: str
    count: int
