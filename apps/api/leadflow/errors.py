from __future__ import annotations

from typing import Any


class LeadflowError(Exception):
    """Base class for errors raised by the workflow and reminder core."""

    code = "leadflow_error"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(LeadflowError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", details={"entity": entity, "id": str(entity_id)})
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(LeadflowError):
    code = "validation_error"
    status_code = 422


class InconsistentStateError(LeadflowError):
    """Raised when persisted state violates an invariant the core relies on."""

    code = "inconsistent_state"
    status_code = 500


class TransientStoreError(LeadflowError):
    """Raised when the record store fails in a way that may succeed on retry."""

    code = "store_unavailable"
    status_code = 503
