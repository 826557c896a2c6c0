from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock

from leadflow.core.config import get_settings
from leadflow.core.database import SessionLocal
from leadflow.notifications.dispatcher import NotificationDispatcher
from leadflow.notifications.periodic import PeriodicTask
from leadflow.notifications.sink import EventBusNotificationSink, LoggingNotificationSink, NotificationSink
from leadflow.reminders.dedup import build_dedup_store


logger = logging.getLogger("leadflow.notifications")


@dataclass(slots=True)
class SessionStatus:
    user_id: str
    running: bool
    reminder_interval_seconds: float
    badge_interval_seconds: float
    badge_count: int | None


class NotificationSession:
    """The reminder and badge polling tasks that live as long as one user's session."""

    def __init__(
        self,
        user_id: str,
        dispatcher: NotificationDispatcher,
        *,
        reminder_interval_seconds: float | None = None,
        badge_interval_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self.user_id = user_id
        self.dispatcher = dispatcher
        self.badge_count: int | None = None
        self.reminder_task = PeriodicTask(
            f"reminders-{user_id}",
            reminder_interval_seconds or settings.reminder_poll_seconds,
            self._reminder_tick,
        )
        self.badge_task = PeriodicTask(
            f"badge-{user_id}",
            badge_interval_seconds or settings.badge_poll_seconds,
            self._badge_tick,
        )

    def start(self) -> None:
        self.reminder_task.start()
        self.badge_task.start()
        logger.info("notifications.session_started", extra={"user_id": self.user_id})

    def stop(self) -> None:
        self.reminder_task.cancel()
        self.badge_task.cancel()
        logger.info("notifications.session_stopped", extra={"user_id": self.user_id})

    @property
    def running(self) -> bool:
        return self.reminder_task.running or self.badge_task.running

    @property
    def stopped(self) -> bool:
        return self.reminder_task.cancelled and self.badge_task.cancelled

    def status(self) -> SessionStatus:
        return SessionStatus(
            user_id=self.user_id,
            running=self.running,
            reminder_interval_seconds=self.reminder_task.interval_seconds,
            badge_interval_seconds=self.badge_task.interval_seconds,
            badge_count=self.badge_count,
        )

    def _reminder_tick(self) -> None:
        self.dispatcher.run_reminder_tick(self.user_id)

    def _badge_tick(self) -> None:
        count = self.dispatcher.run_badge_tick(self.user_id)
        if count is not None:
            self.badge_count = count


def build_sink(kind: str | None = None) -> NotificationSink:
    choice = (kind or get_settings().notification_sink).lower()
    if choice == "event_bus":
        return EventBusNotificationSink()
    return LoggingNotificationSink()


def build_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(SessionLocal, build_sink(), dedup=build_dedup_store(SessionLocal))


class SessionRegistry:
    def __init__(self, dispatcher: NotificationDispatcher | None = None) -> None:
        self._dispatcher = dispatcher
        self._sessions: dict[str, NotificationSession] = {}
        self._lock = Lock()

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = build_dispatcher()
        return self._dispatcher

    def start(self, user_id: str) -> NotificationSession:
        with self._lock:
            existing = self._sessions.get(user_id)
            if existing is not None and not existing.stopped:
                return existing
            session = NotificationSession(user_id, self.dispatcher)
            session.start()
            self._sessions[user_id] = session
            return session

    def get(self, user_id: str) -> NotificationSession | None:
        with self._lock:
            return self._sessions.get(user_id)

    def stop(self, user_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.stop()
        return True

    def stop_all(self) -> int:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.stop()
        return len(sessions)


session_registry = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return session_registry
