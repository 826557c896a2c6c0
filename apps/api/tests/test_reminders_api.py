from __future__ import annotations

import threading
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow import audit, events
from leadflow.api.deps import get_current_user
from leadflow.core.auth import ActorUser
from leadflow.core.config import get_settings
from leadflow.core.database import Base, get_db
from leadflow.main import app
from leadflow.notifications.session import SessionRegistry, get_session_registry


class FakeDispatcher:
    def __init__(self) -> None:
        self.ticked = threading.Event()

    def run_reminder_tick(self, user_id: str) -> int:
        return 0

    def run_badge_tick(self, user_id: str) -> int | None:
        self.ticked.set()
        return 3


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


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture()
def registry(dispatcher: FakeDispatcher) -> Generator[SessionRegistry, None, None]:
    sessions = SessionRegistry(dispatcher=dispatcher)  # type: ignore[arg-type]
    yield sessions
    sessions.stop_all()


@pytest.fixture()
def client(db_session: Session, registry: SessionRegistry) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="agent-7",
            roles=["sales"],
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_session_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_reminder(client: TestClient, **overrides: object) -> dict:
    payload: dict[str, object] = {
        "lead_id": str(uuid.uuid4()),
        "title": "Call back",
        "due_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "assigned_to": "agent-7",
    }
    payload.update(overrides)
    response = client.post("/api/reminders", json=payload)
    assert response.status_code == 201
    return response.json()


def test_reminder_lifecycle(client: TestClient) -> None:
    lead_id = str(uuid.uuid4())
    created = _create_reminder(client, lead_id=lead_id, priority="high", notify_before=15)
    assert created["status"] == "pending"
    assert created["created_by"] == "agent-7"
    assert created["display_status"] == "pending"

    by_lead = client.get("/api/reminders", params={"lead_id": lead_id})
    assert [item["id"] for item in by_lead.json()] == [created["id"]]

    patched = client.patch(f"/api/reminders/{created['id']}", json={"title": "Send proposal"})
    assert patched.status_code == 200
    assert patched.json()["title"] == "Send proposal"

    completed = client.post(f"/api/reminders/{created['id']}/status", json={"status": "completed"})
    assert completed.status_code == 200
    assert completed.json()["completed_by"] == "agent-7"
    assert completed.json()["completed_at"] is not None

    reopened = client.post(
        f"/api/reminders/{created['id']}/status",
        json={"status": "pending"},
        headers={"X-Correlation-Id": "corr-reopen-1"},
    )
    assert reopened.status_code == 422
    assert reopened.json()["code"] == "validation_error"
    assert reopened.json()["correlation_id"] == "corr-reopen-1"

    removed = client.delete(f"/api/reminders/{created['id']}")
    assert removed.status_code == 204
    assert client.get(f"/api/reminders/{created['id']}").status_code == 404


def test_overdue_is_shown_without_being_stored(client: TestClient) -> None:
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    created = _create_reminder(client, due_date=past)

    assert created["status"] == "pending"
    assert created["display_status"] == "overdue"


def test_user_listing_and_badge_default_to_current_user(client: TestClient) -> None:
    now = datetime.now(timezone.utc)
    soon = _create_reminder(client, due_date=(now + timedelta(minutes=10)).isoformat(), notify_before=30)
    later = _create_reminder(client, due_date=(now + timedelta(days=2)).isoformat(), notify_before=30)
    _create_reminder(client, assigned_to="agent-8")

    mine = client.get("/api/reminders")
    assert [item["id"] for item in mine.json()] == [soon["id"], later["id"]]

    theirs = client.get("/api/reminders", params={"assigned_to": "agent-8"})
    assert len(theirs.json()) == 1

    badge = client.get("/api/reminders/badge")
    assert badge.status_code == 200
    assert badge.json() == {"user_id": "agent-7", "count": 1}


def test_reminder_payload_validation(client: TestClient) -> None:
    response = client.post(
        "/api/reminders",
        json={
            "lead_id": str(uuid.uuid4()),
            "title": "Bad lead time",
            "due_date": datetime.now(timezone.utc).isoformat(),
            "assigned_to": "agent-7",
            "notify_before": -5,
        },
    )
    assert response.status_code == 422


def test_blank_reminder_title_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/reminders",
        json={
            "lead_id": str(uuid.uuid4()),
            "title": "   ",
            "due_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
            "assigned_to": "agent-7",
        },
    )
    assert response.status_code == 422

    created = _create_reminder(client, title="  Call back  ")
    assert created["title"] == "Call back"
    blank_patch = client.patch(f"/api/reminders/{created['id']}", json={"title": "\t"})
    assert blank_patch.status_code == 422
    assert client.get(f"/api/reminders/{created['id']}").json()["title"] == "Call back"


def test_document_routes_resolve_against_requirements(client: TestClient) -> None:
    process_id = str(uuid.uuid4())
    lead_id = str(uuid.uuid4())
    requirement = client.post(
        "/api/documents/requirements",
        json={"name": "ID Proof", "process_id": process_id, "file_types": ["pdf"], "max_size_in_mb": 2},
    )
    assert requirement.status_code == 201
    client.post("/api/documents/requirements", json={"name": "Payslip", "process_id": process_id})

    listed = client.get("/api/documents/requirements", params={"process_id": process_id})
    assert sorted(item["name"] for item in listed.json()) == ["ID Proof", "Payslip"]
    assert client.get("/api/documents/requirements").json() == []

    rejected_type = client.post(
        f"/api/documents/leads/{lead_id}",
        json={"requirement_id": requirement.json()["id"], "file_type": "image/png"},
    )
    assert rejected_type.status_code == 422

    submitted = client.post(
        f"/api/documents/leads/{lead_id}",
        json={"requirement_id": requirement.json()["id"], "file_type": "application/pdf", "file_size_bytes": 1024},
    )
    assert submitted.status_code == 201
    assert submitted.json()["name"] == "ID Proof"

    resolved = client.get(f"/api/documents/leads/{lead_id}/resolved", params={"process_id": process_id})
    statuses = {item["name"]: item["status"] for item in resolved.json()}
    assert statuses == {"ID Proof": "pending", "Payslip": "not_submitted"}

    reviewed = client.post(
        f"/api/documents/{submitted.json()['id']}/review",
        json={"status": "rejected", "reason": "expired"},
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["rejection_reason"] == "expired"

    summary = client.get(f"/api/documents/leads/{lead_id}/summary", params={"process_id": process_id})
    assert summary.json() == {"required_count": 2, "submitted_count": 0, "missing": ["ID Proof", "Payslip"]}

    bad_process = client.get(f"/api/documents/leads/{lead_id}/resolved", params={"process_id": "nope"})
    assert bad_process.status_code == 422
    assert bad_process.json()["code"] == "validation_error"


def test_notification_session_start_status_and_stop(client: TestClient, dispatcher: FakeDispatcher) -> None:
    assert client.get("/api/notifications/session").status_code == 404

    started = client.post("/api/notifications/session")
    assert started.status_code == 201
    assert started.json()["user_id"] == "agent-7"
    assert started.json()["running"] is True

    assert dispatcher.ticked.wait(2.0)
    status = client.get("/api/notifications/session")
    assert status.status_code == 200
    assert status.json()["reminder_interval_seconds"] == get_settings().reminder_poll_seconds

    stopped = client.delete("/api/notifications/session")
    assert stopped.status_code == 204
    missing = client.get("/api/notifications/session", headers={"X-Correlation-Id": "corr-session-1"})
    assert missing.status_code == 404
    assert missing.json()["correlation_id"] == "corr-session-1"
