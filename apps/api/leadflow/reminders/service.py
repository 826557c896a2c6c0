from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow import audit, events
from leadflow.core.auth import ActorUser
from leadflow.core.clock import Clock, as_utc, system_clock
from leadflow.core.database import store_errors
from leadflow.errors import NotFoundError, ValidationError
from leadflow.reminders.models import Reminder
from leadflow.reminders.scheduler import badge_count, display_status
from leadflow.reminders.schemas import (
    BadgeRead,
    ReminderCreate,
    ReminderRead,
    ReminderStatus,
    ReminderUpdate,
)


logger = logging.getLogger("leadflow.reminders")

OPEN_STATUSES = ("pending", "overdue")


@dataclass(slots=True)
class ReminderService:
    clock: Clock = system_clock

    entity_type = "reminders.reminder"

    def create_reminder(self, session: Session, actor_user: ActorUser, dto: ReminderCreate) -> ReminderRead:
        reminder = Reminder(
            lead_id=dto.lead_id,
            title=dto.title.strip(),
            description=dto.description,
            due_date=as_utc(dto.due_date),
            status="pending",
            priority=dto.priority,
            assigned_to=dto.assigned_to,
            created_by=actor_user.user_id,
            notify_before=dto.notify_before,
        )
        with store_errors(session, "create_reminder"):
            session.add(reminder)
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(reminder.id),
                action="create",
                before=None,
                after={"lead_id": str(reminder.lead_id), "assigned_to": reminder.assigned_to, "status": reminder.status},
            )
            session.commit()
        logger.info(
            "reminders.created",
            extra={"reminder_id": str(reminder.id), "lead_id": str(reminder.lead_id), "user_id": actor_user.user_id},
        )
        return self.to_read(reminder)

    def get_reminder(self, session: Session, reminder_id: uuid.UUID) -> ReminderRead:
        with store_errors(session, "get_reminder"):
            return self.to_read(self._load(session, reminder_id))

    def list_reminders_by_lead(self, session: Session, lead_id: uuid.UUID) -> list[ReminderRead]:
        with store_errors(session, "list_reminders_by_lead"):
            rows = session.scalars(
                select(Reminder).where(Reminder.lead_id == lead_id).order_by(Reminder.due_date.desc())
            ).all()
            return [self.to_read(row) for row in rows]

    def list_reminders_for_user(self, session: Session, user_id: str) -> list[ReminderRead]:
        with store_errors(session, "list_reminders_for_user"):
            rows = session.scalars(
                select(Reminder)
                .where(Reminder.assigned_to == user_id, Reminder.status.in_(OPEN_STATUSES))
                .order_by(Reminder.due_date.asc())
            ).all()
            return [self.to_read(row) for row in rows]

    def badge_for_user(self, session: Session, user_id: str) -> BadgeRead:
        reminders = self.list_reminders_for_user(session, user_id)
        return BadgeRead(user_id=user_id, count=badge_count(reminders, self.clock.now()))

    def update_reminder(
        self,
        session: Session,
        actor_user: ActorUser,
        reminder_id: uuid.UUID,
        dto: ReminderUpdate,
    ) -> ReminderRead:
        with store_errors(session, "update_reminder"):
            reminder = self._load(session, reminder_id)
            changes = dto.model_dump(exclude_unset=True)
            for key in ("title", "priority", "assigned_to", "notify_before"):
                if changes.get(key) is not None:
                    setattr(reminder, key, changes[key].strip() if key == "title" else changes[key])
            if "description" in changes:
                reminder.description = changes["description"]
            if changes.get("due_date") is not None:
                reminder.due_date = as_utc(changes["due_date"])
            reminder.updated_at = self.clock.now()
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(reminder.id),
                action="update",
                before=None,
                after={key: str(value) if value is not None else None for key, value in changes.items()},
            )
            session.commit()
        return self.to_read(reminder)

    def update_reminder_status(
        self,
        session: Session,
        actor_user: ActorUser,
        reminder_id: uuid.UUID,
        status: ReminderStatus,
    ) -> ReminderRead:
        with store_errors(session, "update_reminder_status"):
            reminder = self._load(session, reminder_id)
            previous = reminder.status
            if previous == "completed" and status != "completed":
                raise ValidationError(
                    "completed reminders cannot change status",
                    details={"reminder_id": str(reminder_id), "status": status},
                )
            now = self.clock.now()
            if status == "completed" and previous != "completed":
                reminder.completed_at = now
                reminder.completed_by = actor_user.user_id
            reminder.status = status
            reminder.updated_at = now
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(reminder.id),
                action="status_change",
                before={"status": previous},
                after={"status": status},
            )
            session.commit()

        if status == "completed" and previous != "completed":
            events.publish(
                events.build_envelope(
                    "reminders.reminder.completed",
                    {"reminder_id": str(reminder_id), "lead_id": str(reminder.lead_id)},
                    actor=actor_user,
                )
            )
        return self.to_read(reminder)

    def delete_reminder(self, session: Session, actor_user: ActorUser, reminder_id: uuid.UUID) -> None:
        with store_errors(session, "delete_reminder"):
            reminder = self._load(session, reminder_id)
            session.delete(reminder)
            session.commit()
        audit.record(
            actor=actor_user,
            entity_type=self.entity_type,
            entity_id=str(reminder_id),
            action="delete",
            before=None,
            after=None,
        )

    def to_read(self, reminder: Reminder) -> ReminderRead:
        read = ReminderRead.model_validate(reminder)
        read.due_date = as_utc(read.due_date)
        read.created_at = as_utc(read.created_at)
        read.updated_at = as_utc(read.updated_at)
        if read.completed_at is not None:
            read.completed_at = as_utc(read.completed_at)
        read.display_status = display_status(read, self.clock.now())
        return read

    def _load(self, session: Session, reminder_id: uuid.UUID) -> Reminder:
        reminder = session.get(Reminder, reminder_id)
        if reminder is None:
            raise NotFoundError("reminder", reminder_id)
        return reminder


reminder_service = ReminderService()
