from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow.api.deps import get_current_user
from leadflow.context import reset_correlation_id, set_correlation_id
from leadflow.core.auth import ActorUser
from leadflow.core.clock import ManualClock
from leadflow.core.config import get_settings
from leadflow.core.database import Base, get_db
from leadflow.logging import JsonLogFormatter
from leadflow.main import app
from leadflow.notifications.dispatcher import NotificationDispatcher
from leadflow.notifications.sink import LoggingNotificationSink
from leadflow.reminders.schemas import ReminderCreate
from leadflow.reminders.service import ReminderService
from leadflow.users.cache import UserCache
from leadflow.users.service import UserService


@pytest.fixture()
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> ActorUser:
        return ActorUser(
            user_id="user-1",
            roles=["admin"],
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    path = f"/api/workflow/processes/{uuid.uuid4()}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [
        record for record in caplog.records if record.name == "leadflow.request" and record.getMessage() == "http.request"
    ]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/workflow/processes/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_structural_delete_is_logged_with_process_id(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    created = client.post("/api/workflow/processes", json={"name": "Logged"})
    process_id = created.json()["id"]

    response = client.delete(f"/api/workflow/processes/{process_id}", headers={"X-Correlation-Id": "corr-delete-1"})
    assert response.status_code == 204

    records = [record for record in caplog.records if record.name == "leadflow.workflow"]
    assert any(
        record.getMessage() == "workflow.process_deleted"
        and getattr(record, "process_id", None) == process_id
        and getattr(record, "correlation_id", None) == "corr-delete-1"
        for record in records
    )


def test_reminder_ticks_log_with_session_user(
    session_factory: sessionmaker,
    db_session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    due = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)
    clock = ManualClock(due - timedelta(minutes=5))
    ReminderService(clock=clock).create_reminder(
        db_session,
        ActorUser(user_id="manager-1"),
        ReminderCreate(lead_id=uuid.uuid4(), title="Call", due_date=due, assigned_to="agent-7", notify_before=10),
    )
    dispatcher = NotificationDispatcher(
        session_factory,
        LoggingNotificationSink(),
        clock=clock,
        users=UserService(cache=UserCache(ttl_seconds=60)),
    )

    with caplog.at_level(logging.INFO, logger="leadflow.notifications"):
        assert dispatcher.run_reminder_tick("agent-7") == 1

    due_records = [record for record in caplog.records if record.getMessage() == "notifications.reminder_due"]
    assert len(due_records) == 1
    assert getattr(due_records[0], "user_id", None) == "agent-7"


def test_json_formatter_emits_known_fields_and_correlation_id() -> None:
    token = set_correlation_id("corr-format-1")
    try:
        record = logging.getLogger("leadflow.workflow").makeRecord(
            "leadflow.workflow",
            logging.INFO,
            __file__,
            1,
            "workflow.process_deleted",
            (),
            None,
            extra={"process_id": "p-1", "ignored_field": "x", "error": "e" * 600},
        )
    finally:
        reset_correlation_id(token)
    record.correlation_id = "corr-format-1"

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "workflow.process_deleted"
    assert payload["logger"] == "leadflow.workflow"
    assert payload["correlation_id"] == "corr-format-1"
    assert payload["fields"]["process_id"] == "p-1"
    assert "ignored_field" not in payload["fields"]
    assert len(payload["fields"]["error"]) == 500
