from leadflow.reminders.dedup import DedupStore, InMemoryDedupStore, SqlDedupStore, build_dedup_store
from leadflow.reminders.models import Reminder, ReminderAlert
from leadflow.reminders.scheduler import (
    ReminderScheduler,
    badge_count,
    display_status,
    is_in_window,
    is_overdue,
    notification_time,
)
from leadflow.reminders.schemas import (
    BadgeRead,
    ReminderCreate,
    ReminderRead,
    ReminderStatusUpdate,
    ReminderUpdate,
)
from leadflow.reminders.service import ReminderService, reminder_service

__all__ = [
    "BadgeRead",
    "DedupStore",
    "InMemoryDedupStore",
    "Reminder",
    "ReminderAlert",
    "ReminderCreate",
    "ReminderRead",
    "ReminderScheduler",
    "ReminderService",
    "ReminderStatusUpdate",
    "ReminderUpdate",
    "SqlDedupStore",
    "badge_count",
    "build_dedup_store",
    "display_status",
    "is_in_window",
    "is_overdue",
    "notification_time",
    "reminder_service",
]
