from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leadflow.api.deps import get_current_user
from leadflow.api.errors import domain_error_response
from leadflow.core.auth import ActorUser
from leadflow.core.database import get_db
from leadflow.errors import LeadflowError
from leadflow.reminders.schemas import (
    BadgeRead,
    ReminderCreate,
    ReminderRead,
    ReminderStatusUpdate,
    ReminderUpdate,
)
from leadflow.reminders.service import ReminderService

router = APIRouter(prefix="/api/reminders", tags=["reminders"])
service = ReminderService()


@router.post("", response_model=ReminderRead, status_code=status.HTTP_201_CREATED)
def create_reminder(
    request: Request,
    dto: ReminderCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ReminderRead | JSONResponse:
    try:
        return service.create_reminder(db, user, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("", response_model=list[ReminderRead])
def list_reminders(
    request: Request,
    lead_id: uuid.UUID | None = Query(default=None),
    assigned_to: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ReminderRead] | JSONResponse:
    try:
        if lead_id is not None:
            return service.list_reminders_by_lead(db, lead_id)
        return service.list_reminders_for_user(db, assigned_to or user.user_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/badge", response_model=BadgeRead)
def reminder_badge(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> BadgeRead | JSONResponse:
    try:
        return service.badge_for_user(db, user.user_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/{reminder_id}", response_model=ReminderRead)
def get_reminder(request: Request, reminder_id: uuid.UUID, db: Session = Depends(get_db)) -> ReminderRead | JSONResponse:
    try:
        return service.get_reminder(db, reminder_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.patch("/{reminder_id}", response_model=ReminderRead)
def update_reminder(
    request: Request,
    reminder_id: uuid.UUID,
    dto: ReminderUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ReminderRead | JSONResponse:
    try:
        return service.update_reminder(db, user, reminder_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/{reminder_id}/status", response_model=ReminderRead)
def update_reminder_status(
    request: Request,
    reminder_id: uuid.UUID,
    dto: ReminderStatusUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ReminderRead | JSONResponse:
    try:
        return service.update_reminder_status(db, user, reminder_id, dto.status)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    request: Request,
    reminder_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        service.delete_reminder(db, user, reminder_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
