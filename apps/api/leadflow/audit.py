from __future__ import annotations

import uuid
from typing import Any

from leadflow.context import get_correlation_id
from leadflow.core.auth import ActorUser
from leadflow.core.clock import utcnow

audit_entries: list[dict[str, Any]] = []


def record(
    *,
    actor: ActorUser,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Append an audit entry for a mutation made by ``actor``.

    The actor's correlation id wins; otherwise the id bound to the current request is used.
    """

    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor.user_id,
        "actor_roles": list(actor.roles),
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "correlation_id": actor.correlation_id or get_correlation_id(),
        "occurred_at": utcnow().isoformat(),
    }
    audit_entries.append(entry)
    return entry


def trail(entity_type: str, entity_id: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["entity_type"] == entity_type and (entity_id is None or entry["entity_id"] == entity_id)
    ]
