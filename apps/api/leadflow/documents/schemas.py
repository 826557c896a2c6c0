from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

DocumentStatus = Literal["not_submitted", "pending", "approved", "rejected"]
ReviewStatus = Literal["pending", "approved", "rejected"]


class RequirementCreate(BaseModel):
    process_id: UUID | None = None
    stage_id: UUID | None = None
    name: str = Field(min_length=1)
    description: str | None = None
    required: bool = True
    file_types: list[str] = Field(default_factory=list)
    max_size_in_mb: float | None = Field(default=None, gt=0)
    is_visible: bool = True


class RequirementUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    required: bool | None = None
    file_types: list[str] | None = None
    max_size_in_mb: float | None = Field(default=None, gt=0)
    is_visible: bool | None = None


class RequirementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    process_id: UUID | None
    stage_id: UUID | None
    name: str
    description: str | None
    required: bool
    file_types: list[str]
    max_size_in_mb: float | None
    is_visible: bool
    created_at: datetime
    updated_at: datetime


class DocumentSubmit(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    requirement_id: UUID | None = None
    file_url: str | None = None
    file_type: str | None = None
    file_size_bytes: int | None = Field(default=None, ge=0)
    notes: str | None = None


class DocumentReview(BaseModel):
    status: ReviewStatus
    reason: str | None = None


class LeadDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    requirement_id: UUID | None
    name: str
    status: DocumentStatus
    uploaded_at: datetime
    file_url: str | None
    file_type: str | None
    file_size_bytes: int | None
    notes: str | None
    uploaded_by: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None
    rejection_reason: str | None


class ResolvedDocument(BaseModel):
    requirement_id: UUID
    name: str
    description: str | None = None
    required: bool = True
    status: DocumentStatus = "not_submitted"
    document_id: UUID | None = None
    uploaded_at: datetime | None = None
    file_url: str | None = None
    file_type: str | None = None
    notes: str | None = None


class RequirementSummary(BaseModel):
    required_count: int
    submitted_count: int
    missing: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.submitted_count >= self.required_count
