from __future__ import annotations

import uuid
from typing import Any

from leadflow.context import get_correlation_id, get_session_user
from leadflow.core.auth import ActorUser
from leadflow.core.clock import utcnow
from leadflow.core.events import event_bus

ENVELOPE_VERSION = 1

published_events: list[dict[str, Any]] = []


def build_envelope(event_type: str, payload: dict[str, Any], *, actor: ActorUser | None = None) -> dict[str, Any]:
    envelope: dict[str, Any] = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": utcnow().isoformat(),
        "actor_user_id": actor.user_id if actor is not None else None,
        "version": ENVELOPE_VERSION,
        "payload": payload,
    }
    if actor is not None and actor.correlation_id:
        envelope["correlation_id"] = actor.correlation_id
    return envelope


def publish(envelope: dict[str, Any]) -> None:
    """Stamp request context onto ``envelope``, keep it for inspection and fan it out on the bus."""
    envelope.setdefault("correlation_id", get_correlation_id())
    session_user = get_session_user()
    if session_user is not None:
        meta = dict(envelope.get("meta") or {})
        meta.setdefault("session_user", session_user)
        envelope["meta"] = meta

    published_events.append(envelope)
    if envelope.get("event_type"):
        event_bus.publish(envelope["event_type"], envelope)
