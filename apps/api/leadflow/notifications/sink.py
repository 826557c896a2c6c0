from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from leadflow import events
from leadflow.reminders.schemas import ReminderRead


logger = logging.getLogger("leadflow.notifications")

NO_DESCRIPTION = "No description provided"


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    reminder_id: str
    lead_id: str
    title: str
    body: str
    tag: str
    link: str
    assignee: str
    assignee_name: str
    priority: str
    due_date: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_payload(reminder: ReminderRead, assignee_name: str) -> NotificationPayload:
    return NotificationPayload(
        reminder_id=str(reminder.id),
        lead_id=str(reminder.lead_id),
        title=f"Reminder: {reminder.title}",
        body=reminder.description or NO_DESCRIPTION,
        tag=str(reminder.id),
        link=f"/leads/{reminder.lead_id}?tab=reminders",
        assignee=reminder.assigned_to,
        assignee_name=assignee_name,
        priority=reminder.priority,
        due_date=reminder.due_date.isoformat(),
    )


class NotificationSink(Protocol):
    def notify(self, payload: NotificationPayload) -> None:
        ...


class LoggingNotificationSink:
    def notify(self, payload: NotificationPayload) -> None:
        logger.info(
            "notifications.reminder_due",
            extra={
                "reminder_id": payload.reminder_id,
                "lead_id": payload.lead_id,
                "user_id": payload.assignee,
            },
        )


class EventBusNotificationSink:
    event_type = "reminders.reminder.due"

    def notify(self, payload: NotificationPayload) -> None:
        events.publish(events.build_envelope(self.event_type, payload.to_dict()))
