from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow import audit
from leadflow.core.auth import ActorUser
from leadflow.core.clock import Clock, as_utc, system_clock
from leadflow.core.database import store_errors
from leadflow.documents.models import DocumentRequirement, LeadDocument
from leadflow.documents.schemas import (
    DocumentReview,
    DocumentSubmit,
    LeadDocumentRead,
    RequirementCreate,
    RequirementRead,
    RequirementSummary,
    RequirementUpdate,
    ResolvedDocument,
)
from leadflow.errors import NotFoundError, ValidationError


logger = logging.getLogger("leadflow.documents")

DEFAULT_PROCESS_KEY = "default"
_SATISFYING_STATUSES = {"pending", "approved"}
_BYTES_PER_MB = 1024 * 1024


def parse_process_key(value: str | uuid.UUID | None) -> uuid.UUID | None:
    """Map a process reference to a column value; ``None`` selects the default bucket."""

    if value is None or isinstance(value, uuid.UUID):
        return value
    if value == DEFAULT_PROCESS_KEY:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError("invalid process id", details={"process_id": value})


def _normalize_file_type(value: str) -> str:
    token = value.strip().lower()
    if "/" in token:
        token = token.rsplit("/", 1)[1]
    return token.lstrip(".")


class RequirementSource(Protocol):
    def list_requirements(
        self,
        process_id: uuid.UUID | None,
        stage_id: uuid.UUID | None,
    ) -> Sequence[DocumentRequirement]:
        ...


class SqlRequirementSource:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_requirements(
        self,
        process_id: uuid.UUID | None,
        stage_id: uuid.UUID | None,
    ) -> Sequence[DocumentRequirement]:
        stmt = select(DocumentRequirement)
        if process_id is None:
            stmt = stmt.where(DocumentRequirement.process_id.is_(None))
        else:
            stmt = stmt.where(DocumentRequirement.process_id == process_id)
        if stage_id is None:
            stmt = stmt.where(DocumentRequirement.stage_id.is_(None))
        else:
            stmt = stmt.where(DocumentRequirement.stage_id == stage_id)
        stmt = stmt.order_by(DocumentRequirement.created_at.asc(), DocumentRequirement.name.asc())
        return self._session.scalars(stmt).all()


def latest_by_name(submissions: Iterable[LeadDocument]) -> dict[str, LeadDocument]:
    ordered = sorted(submissions, key=lambda doc: (as_utc(doc.uploaded_at), str(doc.id)))
    return {doc.name.lower(): doc for doc in ordered}


def merge_documents(
    requirements: Iterable[DocumentRequirement],
    submissions: Iterable[LeadDocument],
) -> list[ResolvedDocument]:
    """Overlay the latest submission onto each visible requirement, matched by lower-cased name.

    Submissions that match no requirement are dropped.
    """

    lookup = latest_by_name(submissions)
    resolved: list[ResolvedDocument] = []
    for requirement in requirements:
        if not requirement.is_visible:
            continue
        row = ResolvedDocument(
            requirement_id=requirement.id,
            name=requirement.name,
            description=requirement.description,
            required=requirement.required,
        )
        submitted = lookup.get(requirement.name.lower())
        if submitted is not None:
            row.status = submitted.status
            row.document_id = submitted.id
            row.uploaded_at = as_utc(submitted.uploaded_at)
            row.file_url = submitted.file_url
            row.file_type = submitted.file_type
            row.notes = submitted.notes
        resolved.append(row)
    return resolved


@dataclass(slots=True)
class DocumentService:
    clock: Clock = system_clock

    entity_type = "documents.lead_document"

    def create_requirement(self, session: Session, actor_user: ActorUser, dto: RequirementCreate) -> RequirementRead:
        payload = dto.model_dump(mode="python")
        payload["name"] = payload["name"].strip()
        payload["file_types"] = [item.strip() for item in payload["file_types"] if item.strip()]
        requirement = DocumentRequirement(**payload)
        with store_errors(session, "create_requirement"):
            session.add(requirement)
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type="documents.requirement",
                entity_id=str(requirement.id),
                action="create",
                before=None,
                after={"name": requirement.name, "process_id": str(requirement.process_id) if requirement.process_id else None},
            )
            session.commit()
        return RequirementRead.model_validate(requirement)

    def get_requirement(self, session: Session, requirement_id: uuid.UUID) -> RequirementRead:
        with store_errors(session, "get_requirement"):
            return RequirementRead.model_validate(self._load_requirement(session, requirement_id))

    def list_requirements(
        self,
        session: Session,
        process_id: str | uuid.UUID | None,
        stage_id: uuid.UUID | None = None,
        *,
        include_hidden: bool = True,
    ) -> list[RequirementRead]:
        with store_errors(session, "list_requirements"):
            rows = SqlRequirementSource(session).list_requirements(parse_process_key(process_id), stage_id)
            return [RequirementRead.model_validate(row) for row in rows if include_hidden or row.is_visible]

    def update_requirement(
        self,
        session: Session,
        actor_user: ActorUser,
        requirement_id: uuid.UUID,
        dto: RequirementUpdate,
    ) -> RequirementRead:
        with store_errors(session, "update_requirement"):
            requirement = self._load_requirement(session, requirement_id)
            changes = dto.model_dump(exclude_unset=True)
            if changes.get("name") is not None:
                requirement.name = changes["name"].strip()
            if changes.get("file_types") is not None:
                requirement.file_types = [item.strip() for item in changes["file_types"] if item.strip()]
            if "description" in changes:
                requirement.description = changes["description"]
            if "max_size_in_mb" in changes:
                requirement.max_size_in_mb = changes["max_size_in_mb"]
            for key in ("required", "is_visible"):
                if changes.get(key) is not None:
                    setattr(requirement, key, changes[key])
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type="documents.requirement",
                entity_id=str(requirement.id),
                action="update",
                before=None,
                after=changes,
            )
            session.commit()
        return RequirementRead.model_validate(requirement)

    def delete_requirement(self, session: Session, actor_user: ActorUser, requirement_id: uuid.UUID) -> None:
        with store_errors(session, "delete_requirement"):
            requirement = self._load_requirement(session, requirement_id)
            session.delete(requirement)
            session.commit()
        audit.record(
            actor=actor_user,
            entity_type="documents.requirement",
            entity_id=str(requirement_id),
            action="delete",
            before=None,
            after=None,
        )

    def list_documents(self, session: Session, lead_id: uuid.UUID) -> list[LeadDocumentRead]:
        with store_errors(session, "list_documents"):
            return [LeadDocumentRead.model_validate(row) for row in self._submissions(session, lead_id)]

    def submit_document(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        dto: DocumentSubmit,
    ) -> LeadDocumentRead:
        with store_errors(session, "submit_document"):
            name = dto.name.strip() if dto.name else None
            if dto.requirement_id is not None:
                requirement = self._load_requirement(session, dto.requirement_id)
                self._check_against_requirement(requirement, dto)
                name = name or requirement.name
            if not name:
                raise ValidationError("document name is required when no requirement is referenced")

            document = LeadDocument(
                lead_id=lead_id,
                requirement_id=dto.requirement_id,
                name=name,
                status="pending",
                uploaded_at=self.clock.now(),
                file_url=dto.file_url,
                file_type=dto.file_type,
                file_size_bytes=dto.file_size_bytes,
                notes=dto.notes,
                uploaded_by=actor_user.user_id,
            )
            session.add(document)
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(document.id),
                action="submit",
                before=None,
                after={"lead_id": str(lead_id), "name": document.name, "status": document.status},
            )
            session.commit()

        logger.info("documents.submitted", extra={"lead_id": str(lead_id), "user_id": actor_user.user_id})
        return LeadDocumentRead.model_validate(document)

    def review_document(
        self,
        session: Session,
        actor_user: ActorUser,
        document_id: uuid.UUID,
        dto: DocumentReview,
    ) -> LeadDocumentRead:
        with store_errors(session, "review_document"):
            document = session.get(LeadDocument, document_id)
            if document is None:
                raise NotFoundError("document", document_id)
            before = {"status": document.status}
            document.status = dto.status
            document.reviewed_by = actor_user.user_id
            document.reviewed_at = self.clock.now()
            document.rejection_reason = dto.reason if dto.status == "rejected" else None
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(document.id),
                action="review",
                before=before,
                after={"status": document.status, "reason": document.rejection_reason},
            )
            session.commit()
        return LeadDocumentRead.model_validate(document)

    def resolve_documents(
        self,
        session: Session,
        lead_id: uuid.UUID,
        process_id: str | uuid.UUID | None,
        stage_id: uuid.UUID | None = None,
        *,
        source: RequirementSource | None = None,
    ) -> list[ResolvedDocument]:
        requirement_source = source or SqlRequirementSource(session)
        with store_errors(session, "resolve_documents"):
            requirements = requirement_source.list_requirements(parse_process_key(process_id), stage_id)
            submissions = self._submissions(session, lead_id)
            return merge_documents(requirements, submissions)

    def summarize_requirements(
        self,
        session: Session,
        lead_id: uuid.UUID,
        process_id: str | uuid.UUID | None,
        stage_id: uuid.UUID | None = None,
    ) -> RequirementSummary:
        with store_errors(session, "summarize_requirements"):
            requirements = [
                row
                for row in SqlRequirementSource(session).list_requirements(parse_process_key(process_id), stage_id)
                if row.is_visible and row.required
            ]
            submissions = self._submissions(session, lead_id)

        by_name = latest_by_name(submissions)
        missing: list[str] = []
        for requirement in requirements:
            match = by_name.get(requirement.name.lower())
            if match is None or match.status not in _SATISFYING_STATUSES:
                missing.append(requirement.name)

        return RequirementSummary(
            required_count=len(requirements),
            submitted_count=len(requirements) - len(missing),
            missing=missing,
        )

    def _submissions(self, session: Session, lead_id: uuid.UUID) -> Sequence[LeadDocument]:
        return session.scalars(
            select(LeadDocument)
            .where(LeadDocument.lead_id == lead_id)
            .order_by(LeadDocument.uploaded_at.asc(), LeadDocument.created_at.asc())
        ).all()

    def _load_requirement(self, session: Session, requirement_id: uuid.UUID) -> DocumentRequirement:
        requirement = session.get(DocumentRequirement, requirement_id)
        if requirement is None:
            raise NotFoundError("document requirement", requirement_id)
        return requirement

    def _check_against_requirement(self, requirement: DocumentRequirement, dto: DocumentSubmit) -> None:
        allowed = {_normalize_file_type(item) for item in requirement.file_types or []}
        if allowed:
            if not dto.file_type or _normalize_file_type(dto.file_type) not in allowed:
                raise ValidationError(
                    "file type not allowed for this requirement",
                    details={"file_type": dto.file_type, "allowed": sorted(allowed)},
                )
        if requirement.max_size_in_mb is not None and dto.file_size_bytes is not None:
            limit = int(requirement.max_size_in_mb * _BYTES_PER_MB)
            if dto.file_size_bytes > limit:
                raise ValidationError(
                    "file exceeds the maximum size for this requirement",
                    details={"file_size_bytes": dto.file_size_bytes, "max_size_in_mb": requirement.max_size_in_mb},
                )


document_service = DocumentService()
