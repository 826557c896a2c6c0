from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import leadflow.models  # noqa: F401
from leadflow.core.clock import ManualClock
from leadflow.core.database import Base
from leadflow.errors import NotFoundError, ValidationError
from leadflow.users.cache import UserCache
from leadflow.users.schemas import UNKNOWN_USER, UserCreate, UserRead, UserUpdate
from leadflow.users.service import UserService


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


def _user(**overrides: object) -> UserRead:
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    fields: dict[str, object] = {
        "id": uuid.uuid4(),
        "username": "asha",
        "name": None,
        "email": None,
        "display_name": None,
        "active": True,
        "role": None,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return UserRead(**fields)


def test_cache_serves_hits_until_ttl_expires() -> None:
    clock = ManualClock(datetime(2030, 1, 1, tzinfo=timezone.utc))
    cache = UserCache(ttl_seconds=60, clock=clock)
    user = _user(display_name="Asha Rao")
    loads: list[uuid.UUID] = []

    def loader(key: uuid.UUID) -> UserRead | None:
        loads.append(key)
        return user

    assert cache.get(user.id, loader) == user
    assert cache.get(str(user.id), loader) == user
    assert len(loads) == 1

    clock.advance(seconds=59)
    cache.get(user.id, loader)
    assert len(loads) == 1

    clock.advance(seconds=2)
    cache.get(user.id, loader)
    assert len(loads) == 2
    assert len(cache) == 1


def test_missing_users_are_not_cached_and_invalid_ids_skip_the_loader() -> None:
    cache = UserCache(ttl_seconds=60)
    loads: list[uuid.UUID] = []

    def loader(key: uuid.UUID) -> UserRead | None:
        loads.append(key)
        return None

    missing = uuid.uuid4()
    assert cache.get(missing, loader) is None
    assert cache.get(missing, loader) is None
    assert cache.get("not-a-uuid", loader) is None

    assert loads == [missing, missing]
    assert len(cache) == 0


def test_invalidate_and_clear() -> None:
    cache = UserCache(ttl_seconds=60)
    first = _user()
    second = _user(username="ravi")
    cache.get(first.id, lambda key: first)
    cache.get(second.id, lambda key: second)

    cache.invalidate(first.id)
    cache.invalidate("not-a-uuid")
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize(
    ("fields", "expected"),
    [
        ({"display_name": "Asha Rao", "name": "Asha", "email": "asha@example.com"}, "Asha Rao"),
        ({"name": "Asha", "email": "asha@example.com"}, "Asha"),
        ({"email": "asha@example.com"}, "asha@example.com"),
        ({}, UNKNOWN_USER),
    ],
)
def test_display_name_fallback_chain(fields: dict[str, object], expected: str) -> None:
    assert _user(**fields).resolved_display_name == expected


def test_service_resolves_names_and_invalidates_on_update(db_session: Session) -> None:
    service = UserService(cache=UserCache(ttl_seconds=300))
    created = service.create_user(db_session, UserCreate(username="asha", name="Asha"))

    assert service.display_name(db_session, created.id) == "Asha"
    assert service.display_name(db_session, uuid.uuid4()) == UNKNOWN_USER
    assert service.display_name(db_session, "legacy-id") == UNKNOWN_USER

    service.update_user(db_session, created.id, UserUpdate(display_name="Asha Rao"))
    assert service.display_name(db_session, created.id) == "Asha Rao"

    service.delete_user(db_session, created.id)
    assert service.get_user(db_session, created.id) is None
    with pytest.raises(NotFoundError):
        service.delete_user(db_session, created.id)


def test_service_rejects_duplicate_usernames_and_filters_lists(db_session: Session) -> None:
    service = UserService(cache=UserCache(ttl_seconds=300))
    service.create_user(db_session, UserCreate(username="asha", role="sales"))
    service.create_user(db_session, UserCreate(username="ravi", role="admin", active=False))

    with pytest.raises(ValidationError):
        service.create_user(db_session, UserCreate(username="asha"))

    assert [user.username for user in service.list_users(db_session)] == ["asha", "ravi"]
    assert [user.username for user in service.list_users(db_session, active=True)] == ["asha"]
    assert [user.username for user in service.list_users(db_session, role="admin")] == ["ravi"]
