from __future__ import annotations

from fastapi import Depends, Request

from leadflow.context import get_correlation_id
from leadflow.core.auth import ActorUser, AuthUser
from leadflow.core.auth import get_current_user as get_auth_user


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return ActorUser(user_id=auth_user.sub, roles=list(auth_user.roles), correlation_id=correlation_id)
