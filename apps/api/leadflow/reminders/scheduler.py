"""Alert-window and overdue arithmetic for reminders.

Everything here is a pure function of the reminder fields and ``now``; nothing mutates stored status.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Protocol

from leadflow.core.clock import Clock, as_utc, system_clock
from leadflow.reminders.dedup import DedupStore


class ReminderLike(Protocol):
    id: uuid.UUID
    status: str
    due_date: datetime
    notify_before: int | None


def notification_time(due_date: datetime, notify_before: int | None) -> datetime:
    return as_utc(due_date) - timedelta(minutes=notify_before or 0)


def is_in_window(reminder: ReminderLike, now: datetime) -> bool:
    due = as_utc(reminder.due_date)
    return notification_time(due, reminder.notify_before) <= as_utc(now) <= due


def is_overdue(reminder: ReminderLike, now: datetime) -> bool:
    return reminder.status != "completed" and as_utc(now) > as_utc(reminder.due_date)


def display_status(reminder: ReminderLike, now: datetime) -> str:
    if is_overdue(reminder, now):
        return "overdue"
    return reminder.status


def badge_count(reminders: Iterable[ReminderLike], now: datetime) -> int:
    current = as_utc(now)
    return sum(
        1
        for reminder in reminders
        if reminder.status == "pending" and notification_time(reminder.due_date, reminder.notify_before) <= current
    )


class ReminderScheduler:
    def __init__(self, dedup: DedupStore, clock: Clock = system_clock) -> None:
        self.dedup = dedup
        self.clock = clock

    def is_eligible(self, reminder: ReminderLike, now: datetime | None = None) -> bool:
        current = now or self.clock.now()
        if reminder.status != "pending" or not is_in_window(reminder, current):
            return False
        return not self.dedup.was_recently_alerted(reminder.id)

    def eligible(self, reminders: Iterable[ReminderLike], now: datetime | None = None) -> list[ReminderLike]:
        current = now or self.clock.now()
        return [reminder for reminder in reminders if self.is_eligible(reminder, current)]
