from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from threading import Lock
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadflow.core.clock import Clock, as_utc, system_clock
from leadflow.core.config import get_settings
from leadflow.core.database import store_errors
from leadflow.reminders.models import ReminderAlert


class DedupStore(Protocol):
    def was_recently_alerted(self, reminder_id: uuid.UUID) -> bool:
        ...

    def mark_alerted(self, reminder_id: uuid.UUID, when: datetime) -> None:
        ...


def _window(window_seconds: int | None) -> timedelta:
    seconds = window_seconds if window_seconds is not None else get_settings().alert_dedup_window_seconds
    return timedelta(seconds=seconds)


class InMemoryDedupStore:
    """Last-alert timestamps held in process memory, one store per notification session."""

    def __init__(self, clock: Clock = system_clock, window_seconds: int | None = None) -> None:
        self.clock = clock
        self.window = _window(window_seconds)
        self._alerts: dict[uuid.UUID, datetime] = {}
        self._lock = Lock()

    def was_recently_alerted(self, reminder_id: uuid.UUID) -> bool:
        with self._lock:
            last = self._alerts.get(reminder_id)
        if last is None:
            return False
        return self.clock.now() - last <= self.window

    def mark_alerted(self, reminder_id: uuid.UUID, when: datetime) -> None:
        with self._lock:
            self._alerts[reminder_id] = as_utc(when)

    def prune(self) -> int:
        cutoff = self.clock.now() - self.window
        with self._lock:
            stale = [key for key, value in self._alerts.items() if value < cutoff]
            for key in stale:
                del self._alerts[key]
        return len(stale)


class SqlDedupStore:
    """Dedup log persisted in ``reminder_alert`` so several workers share one view."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock = system_clock,
        window_seconds: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.window = _window(window_seconds)

    def was_recently_alerted(self, reminder_id: uuid.UUID) -> bool:
        session = self.session_factory()
        try:
            with store_errors(session, "dedup_lookup"):
                row = session.get(ReminderAlert, reminder_id)
                if row is None:
                    return False
                return self.clock.now() - as_utc(row.alerted_at) <= self.window
        finally:
            session.close()

    def mark_alerted(self, reminder_id: uuid.UUID, when: datetime) -> None:
        session = self.session_factory()
        try:
            with store_errors(session, "dedup_mark"):
                row = session.get(ReminderAlert, reminder_id)
                if row is not None:
                    row.alerted_at = as_utc(when)
                    session.commit()
                    return
                session.add(ReminderAlert(reminder_id=reminder_id, alerted_at=as_utc(when)))
                try:
                    session.commit()
                except IntegrityError:
                    # another worker inserted the first alert for this reminder
                    session.rollback()
                    session.execute(
                        update(ReminderAlert)
                        .where(ReminderAlert.reminder_id == reminder_id)
                        .values(alerted_at=as_utc(when))
                    )
                    session.commit()
        finally:
            session.close()


def build_dedup_store(
    session_factory: Callable[[], Session],
    clock: Clock = system_clock,
    backend: str | None = None,
) -> DedupStore:
    choice = (backend or get_settings().alert_dedup_backend).lower()
    if choice == "db":
        return SqlDedupStore(session_factory, clock)
    return InMemoryDedupStore(clock)
