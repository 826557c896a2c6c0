from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_USER = "Unknown User"


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    name: str | None = None
    email: str | None = None
    display_name: str | None = None
    active: bool = True
    role: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    display_name: str | None = None
    active: bool | None = None
    role: str | None = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    name: str | None
    email: str | None
    display_name: str | None
    active: bool
    role: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def resolved_display_name(self) -> str:
        return self.display_name or self.name or self.email or UNKNOWN_USER
