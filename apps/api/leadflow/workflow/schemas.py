from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProcessCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_active: bool = True
    order: int | None = None


class ProcessUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = None


class StageCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    color: str | None = None
    is_active: bool = True
    order: int | None = None


class StageUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color: str | None = None
    is_active: bool | None = None


class ReorderRequest(BaseModel):
    ordered_ids: list[UUID]


class StageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    process_id: UUID
    name: str
    description: str | None
    color: str
    is_active: bool
    order: int
    created_at: datetime
    updated_at: datetime


class ProcessRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    is_active: bool
    order: int
    created_at: datetime
    updated_at: datetime
    stages: list[StageRead] = Field(default_factory=list)
