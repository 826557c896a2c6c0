from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadflow.context import reset_session_user, set_session_user
from leadflow.core.clock import Clock, system_clock
from leadflow.errors import LeadflowError
from leadflow.metrics import observe_alert, observe_tick
from leadflow.notifications.sink import NotificationSink, build_payload
from leadflow.reminders.dedup import DedupStore, InMemoryDedupStore
from leadflow.reminders.scheduler import ReminderScheduler, badge_count
from leadflow.reminders.schemas import ReminderRead
from leadflow.reminders.service import ReminderService
from leadflow.users.service import UserService, user_service


logger = logging.getLogger("leadflow.notifications")
tracer = trace.get_tracer("leadflow.notifications")


class NotificationDispatcher:
    """Pulls a user's open reminders and hands each eligible one to the sink once per dedup window."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sink: NotificationSink,
        *,
        clock: Clock = system_clock,
        dedup: DedupStore | None = None,
        users: UserService | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.sink = sink
        self.clock = clock
        self.dedup = dedup or InMemoryDedupStore(clock)
        self.scheduler = ReminderScheduler(self.dedup, clock)
        self.reminders = ReminderService(clock=clock)
        self.users = users or user_service

    def run_reminder_tick(self, user_id: str) -> int:
        """Run one reminder cycle for ``user_id`` and return how many notifications were sent."""

        started = time.perf_counter()
        token = set_session_user(user_id)
        try:
            with tracer.start_as_current_span("notifications.reminder_tick") as span:
                span.set_attribute("user_id", user_id)
                try:
                    reminders, assignee_name = self._load_open_reminders(user_id)
                    now = self.clock.now()
                    eligible = self.scheduler.eligible(reminders, now)
                except (LeadflowError, SQLAlchemyError) as exc:
                    logger.warning(
                        "notifications.reminder_tick_skipped",
                        extra={"user_id": user_id, "error": str(exc)},
                    )
                    observe_tick("reminder", "store_error", time.perf_counter() - started)
                    return 0

                span.set_attribute("eligible_count", len(eligible))
                sent = 0
                for reminder in eligible:
                    if self._deliver(reminder, assignee_name, now):
                        sent += 1

                outcome = "sent" if sent else "idle"
                if sent < len(eligible):
                    outcome = "partial"
                observe_tick("reminder", outcome, time.perf_counter() - started)
                logger.debug(
                    "notifications.reminder_tick",
                    extra={"user_id": user_id, "eligible_count": len(eligible)},
                )
                return sent
        finally:
            reset_session_user(token)

    def run_badge_tick(self, user_id: str) -> int | None:
        """Return the user's badge count, or ``None`` when the store could not be read."""

        started = time.perf_counter()
        try:
            reminders, _ = self._load_open_reminders(user_id, with_assignee=False)
        except (LeadflowError, SQLAlchemyError) as exc:
            logger.warning("notifications.badge_tick_skipped", extra={"user_id": user_id, "error": str(exc)})
            observe_tick("badge", "store_error", time.perf_counter() - started)
            return None

        count = badge_count(reminders, self.clock.now())
        observe_tick("badge", "ok", time.perf_counter() - started)
        logger.debug("notifications.badge_tick", extra={"user_id": user_id, "badge_count": count})
        return count

    def _load_open_reminders(self, user_id: str, *, with_assignee: bool = True) -> tuple[list[ReminderRead], str]:
        session = self.session_factory()
        try:
            reminders = self.reminders.list_reminders_for_user(session, user_id)
            assignee_name = self.users.display_name(session, user_id) if with_assignee and reminders else ""
            return reminders, assignee_name
        finally:
            session.close()

    def _deliver(self, reminder: ReminderRead, assignee_name: str, now: datetime) -> bool:
        payload = build_payload(reminder, assignee_name)
        try:
            self.sink.notify(payload)
        except Exception as exc:
            observe_alert("failed")
            logger.warning(
                "notifications.sink_failed",
                extra={"reminder_id": payload.reminder_id, "user_id": reminder.assigned_to, "error": str(exc)},
            )
            return False

        observe_alert("sent")
        try:
            self.dedup.mark_alerted(reminder.id, now)
        except (LeadflowError, SQLAlchemyError) as exc:
            logger.warning(
                "notifications.dedup_mark_failed",
                extra={"reminder_id": payload.reminder_id, "error": str(exc)},
            )
        return True
