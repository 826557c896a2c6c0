from __future__ import annotations

import uuid
from collections.abc import Generator, Sequence
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import leadflow.models  # noqa: F401
from leadflow.core.auth import ActorUser
from leadflow.core.clock import ManualClock
from leadflow.core.database import Base
from leadflow.documents.models import DocumentRequirement
from leadflow.documents.schemas import DocumentReview, DocumentSubmit, RequirementCreate, RequirementUpdate
from leadflow.documents.service import DocumentService, parse_process_key
from leadflow.errors import NotFoundError, ValidationError


ACTOR = ActorUser(user_id="agent-3", roles=["sales"])
START = datetime(2030, 5, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture()
def service(clock: ManualClock) -> DocumentService:
    return DocumentService(clock=clock)


def _requirement(service: DocumentService, session: Session, name: str, **overrides: object) -> uuid.UUID:
    return service.create_requirement(session, ACTOR, RequirementCreate(name=name, **overrides)).id


def _submit(service: DocumentService, session: Session, lead_id: uuid.UUID, **fields: object) -> uuid.UUID:
    return service.submit_document(session, ACTOR, lead_id, DocumentSubmit(**fields)).id


def test_parse_process_key() -> None:
    process_id = uuid.uuid4()

    assert parse_process_key(None) is None
    assert parse_process_key("default") is None
    assert parse_process_key(str(process_id)) == process_id
    assert parse_process_key(process_id) == process_id
    with pytest.raises(ValidationError):
        parse_process_key("not-a-uuid")


def test_resolve_overlays_latest_submission_case_insensitively(
    db_session: Session,
    service: DocumentService,
    clock: ManualClock,
) -> None:
    process_id = uuid.uuid4()
    stage_id = uuid.uuid4()
    lead_id = uuid.uuid4()
    _requirement(service, db_session, "ID Proof", process_id=process_id, stage_id=stage_id)
    _requirement(service, db_session, "Address Proof", process_id=process_id, stage_id=stage_id, required=False)

    first = _submit(service, db_session, lead_id, name="id proof", file_url="https://files/1.pdf")
    clock.advance(minutes=5)
    latest = _submit(service, db_session, lead_id, name="ID PROOF", file_url="https://files/2.pdf")
    _submit(service, db_session, lead_id, name="Unrelated Scan")
    service.review_document(db_session, ACTOR, first, DocumentReview(status="rejected", reason="blurry"))

    resolved = service.resolve_documents(db_session, lead_id, process_id, stage_id)

    by_name = {row.name: row for row in resolved}
    assert sorted(by_name) == ["Address Proof", "ID Proof"]
    id_proof = by_name["ID Proof"]
    address_proof = by_name["Address Proof"]
    assert id_proof.document_id == latest
    assert id_proof.status == "pending"
    assert id_proof.file_url == "https://files/2.pdf"
    assert id_proof.uploaded_at == START + timedelta(minutes=5)
    assert address_proof.status == "not_submitted"
    assert address_proof.required is False
    assert address_proof.document_id is None


def test_resolve_is_deterministic(db_session: Session, service: DocumentService, clock: ManualClock) -> None:
    lead_id = uuid.uuid4()
    _requirement(service, db_session, "Payslip")
    _submit(service, db_session, lead_id, name="Payslip")
    clock.advance(seconds=1)
    _submit(service, db_session, lead_id, name="payslip")

    first = service.resolve_documents(db_session, lead_id, "default")
    second = service.resolve_documents(db_session, lead_id, "default")

    assert first == second


def test_resolve_uses_default_bucket_and_skips_hidden(db_session: Session, service: DocumentService) -> None:
    lead_id = uuid.uuid4()
    _requirement(service, db_session, "Application Form")
    _requirement(service, db_session, "Internal Checklist", is_visible=False)
    _requirement(service, db_session, "Other Process Form", process_id=uuid.uuid4())

    resolved = service.resolve_documents(db_session, lead_id, None)

    assert [row.name for row in resolved] == ["Application Form"]
    assert resolved[0].status == "not_submitted"
    assert [row.name for row in service.list_requirements(db_session, "default")] == [
        "Application Form",
        "Internal Checklist",
    ]
    assert [row.name for row in service.list_requirements(db_session, "default", include_hidden=False)] == [
        "Application Form"
    ]


def test_resolve_without_requirements_returns_empty(db_session: Session, service: DocumentService) -> None:
    lead_id = uuid.uuid4()
    _submit(service, db_session, lead_id, name="Stray Upload")

    assert service.resolve_documents(db_session, lead_id, uuid.uuid4(), uuid.uuid4()) == []


def test_resolve_accepts_custom_requirement_source(db_session: Session, service: DocumentService) -> None:
    lead_id = uuid.uuid4()
    requirement = DocumentRequirement(
        id=uuid.uuid4(),
        name="Bank Statement",
        required=True,
        file_types=[],
        is_visible=True,
    )

    class StaticSource:
        def __init__(self) -> None:
            self.calls: list[tuple[uuid.UUID | None, uuid.UUID | None]] = []

        def list_requirements(
            self,
            process_id: uuid.UUID | None,
            stage_id: uuid.UUID | None,
        ) -> Sequence[DocumentRequirement]:
            self.calls.append((process_id, stage_id))
            return [requirement]

    source = StaticSource()
    _submit(service, db_session, lead_id, name="bank statement")

    resolved = service.resolve_documents(db_session, lead_id, "default", source=source)

    assert source.calls == [(None, None)]
    assert [(row.name, row.status) for row in resolved] == [("Bank Statement", "pending")]


def test_submit_validates_against_requirement(db_session: Session, service: DocumentService) -> None:
    lead_id = uuid.uuid4()
    requirement_id = _requirement(service, db_session, "Photo", file_types=["jpg", ".PNG"], max_size_in_mb=1)

    with pytest.raises(ValidationError):
        _submit(service, db_session, lead_id, requirement_id=requirement_id, file_type="application/pdf")
    with pytest.raises(ValidationError):
        _submit(service, db_session, lead_id, requirement_id=requirement_id)
    with pytest.raises(ValidationError):
        _submit(
            service,
            db_session,
            lead_id,
            requirement_id=requirement_id,
            file_type="image/png",
            file_size_bytes=1024 * 1024 + 1,
        )
    with pytest.raises(ValidationError):
        _submit(service, db_session, lead_id)
    with pytest.raises(NotFoundError):
        _submit(service, db_session, lead_id, requirement_id=uuid.uuid4(), file_type="jpg")

    document_id = _submit(
        service,
        db_session,
        lead_id,
        requirement_id=requirement_id,
        file_type="image/png",
        file_size_bytes=1024 * 1024,
    )
    documents = service.list_documents(db_session, lead_id)
    assert [(doc.id, doc.name, doc.status, doc.uploaded_by) for doc in documents] == [
        (document_id, "Photo", "pending", "agent-3")
    ]


def test_review_records_reviewer_and_clears_reason_unless_rejected(
    db_session: Session,
    service: DocumentService,
    clock: ManualClock,
) -> None:
    lead_id = uuid.uuid4()
    document_id = _submit(service, db_session, lead_id, name="Contract")

    rejected = service.review_document(db_session, ACTOR, document_id, DocumentReview(status="rejected", reason="unsigned"))
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "unsigned"
    assert rejected.reviewed_by == "agent-3"

    clock.advance(minutes=1)
    approved = service.review_document(db_session, ACTOR, document_id, DocumentReview(status="approved", reason="ignored"))
    assert approved.status == "approved"
    assert approved.rejection_reason is None
    assert approved.reviewed_at is not None

    with pytest.raises(NotFoundError):
        service.review_document(db_session, ACTOR, uuid.uuid4(), DocumentReview(status="approved"))


def test_summary_counts_required_visible_requirements(
    db_session: Session,
    service: DocumentService,
    clock: ManualClock,
) -> None:
    process_id = uuid.uuid4()
    lead_id = uuid.uuid4()
    passport = _requirement(service, db_session, "Passport", process_id=process_id)
    _requirement(service, db_session, "Utility Bill", process_id=process_id)
    _requirement(service, db_session, "Tax Return", process_id=process_id)
    _requirement(service, db_session, "Optional Letter", process_id=process_id, required=False)
    _requirement(service, db_session, "Hidden Form", process_id=process_id, is_visible=False)

    _submit(service, db_session, lead_id, requirement_id=passport)
    clock.advance(seconds=1)
    bill = _submit(service, db_session, lead_id, name="utility bill")
    service.review_document(db_session, ACTOR, bill, DocumentReview(status="approved"))
    clock.advance(seconds=1)
    tax = _submit(service, db_session, lead_id, name="Tax Return")
    service.review_document(db_session, ACTOR, tax, DocumentReview(status="rejected", reason="old year"))

    summary = service.summarize_requirements(db_session, lead_id, str(process_id))

    assert summary.required_count == 3
    assert summary.submitted_count == 2
    assert summary.missing == ["Tax Return"]
    assert summary.complete is False


def test_summary_and_resolve_match_submissions_by_name_only(
    db_session: Session,
    service: DocumentService,
) -> None:
    process_id = uuid.uuid4()
    lead_id = uuid.uuid4()
    passport = _requirement(service, db_session, "Passport", process_id=process_id)
    _submit(service, db_session, lead_id, requirement_id=passport, name="Passport scan (old)")

    resolved = service.resolve_documents(db_session, lead_id, str(process_id))
    summary = service.summarize_requirements(db_session, lead_id, str(process_id))

    assert [(row.name, row.status) for row in resolved] == [("Passport", "not_submitted")]
    assert summary.missing == ["Passport"]
    assert summary.submitted_count == 0


def test_requirement_update_and_delete(db_session: Session, service: DocumentService) -> None:
    requirement_id = _requirement(service, db_session, "Licence", file_types=["pdf"])

    updated = service.update_requirement(
        db_session,
        ACTOR,
        requirement_id,
        RequirementUpdate(name=" Driving Licence ", file_types=["pdf", " jpg ", ""], required=False),
    )
    assert updated.name == "Driving Licence"
    assert updated.file_types == ["pdf", "jpg"]
    assert updated.required is False
    assert service.get_requirement(db_session, requirement_id).name == "Driving Licence"

    service.delete_requirement(db_session, ACTOR, requirement_id)
    with pytest.raises(NotFoundError):
        service.get_requirement(db_session, requirement_id)
