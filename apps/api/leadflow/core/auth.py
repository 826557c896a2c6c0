from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from jose import JWTError, jwt
from starlette.requests import Request

from leadflow.core.config import get_settings


@dataclass(frozen=True)
class AuthUser:
    sub: str
    roles: list[str]


ANONYMOUS = AuthUser(sub="anonymous", roles=["guest"])


@dataclass
class ActorUser:
    """Identity stamped on mutations: ``created_by``, ``reviewed_by``, audit and event envelopes."""

    user_id: str
    roles: list[str] = field(default_factory=list)
    correlation_id: str | None = None


SYSTEM_ACTOR = ActorUser(user_id="system", roles=["system"])


def _bearer_token(request: Request) -> str | None:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_token(token: str) -> AuthUser:
    settings = get_settings()
    try:
        claims: dict[str, Any] = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return ANONYMOUS
    roles = claims.get("roles")
    return AuthUser(
        sub=str(claims.get("sub") or ANONYMOUS.sub),
        roles=[str(role) for role in roles] if isinstance(roles, list) else ["user"],
    )


async def get_current_user(request: Request) -> AuthUser:
    token = _bearer_token(request)
    return decode_token(token) if token else ANONYMOUS
