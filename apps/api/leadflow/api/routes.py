from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from leadflow.api.deps import get_current_user
from leadflow.core.auth import ActorUser, AuthUser
from leadflow.core.auth import get_current_user as get_auth_user
from leadflow.core.config import get_settings
from leadflow.documents.api import router as documents_router
from leadflow.metrics import METRICS_READ_ROLE, render_metrics
from leadflow.notifications.api import router as notifications_router
from leadflow.reminders.api import router as reminders_router
from leadflow.workflow.api import router as workflow_router

router = APIRouter()
for feature_router in (workflow_router, documents_router, reminders_router, notifications_router):
    router.include_router(feature_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {"status": "ok", "service": settings.app_name, "environment": settings.app_env}


@router.get("/me", tags=["auth"])
def me(actor_user: ActorUser = Depends(get_current_user)) -> dict[str, str | list[str] | None]:
    return {"user_id": actor_user.user_id, "roles": actor_user.roles, "correlation_id": actor_user.correlation_id}


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_auth_user)) -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if METRICS_READ_ROLE not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"missing role: {METRICS_READ_ROLE}")
    body, content_type = render_metrics()
    return Response(content=body, media_type=content_type)
