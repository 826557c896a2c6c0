from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from leadflow.api.deps import get_current_user
from leadflow.api.errors import error_response
from leadflow.core.auth import ActorUser
from leadflow.notifications.session import SessionRegistry, get_session_registry

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class SessionStatusRead(BaseModel):
    user_id: str
    running: bool
    reminder_interval_seconds: float
    badge_interval_seconds: float
    badge_count: int | None


@router.post("/session", response_model=SessionStatusRead, status_code=status.HTTP_201_CREATED)
def start_session(
    user: ActorUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStatusRead:
    session = registry.start(user.user_id)
    return SessionStatusRead(**asdict(session.status()))


@router.get("/session", response_model=SessionStatusRead)
def get_session(
    request: Request,
    user: ActorUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStatusRead | JSONResponse:
    session = registry.get(user.user_id)
    if session is None:
        return error_response(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            code="not_found",
            message="notification session not found",
            details={"user_id": user.user_id},
        )
    return SessionStatusRead(**asdict(session.status()))


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def stop_session(
    user: ActorUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    registry.stop(user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
