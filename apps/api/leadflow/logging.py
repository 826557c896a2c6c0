from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from leadflow.context import get_log_context
from leadflow.core.clock import utcnow


STRUCTURED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "reminder_id",
        "process_id",
        "stage_id",
        "lead_id",
        "task_name",
        "event_name",
        "session_count",
        "eligible_count",
        "badge_count",
        "error",
    }
)
MAX_ERROR_LENGTH = 500


def _attach_context(record: logging.LogRecord) -> None:
    for key, value in get_log_context().items():
        if not getattr(record, key, None):
            setattr(record, key, value)


class ContextFilter(logging.Filter):
    """Stamps correlation id and session user on records created outside the record factory."""

    def filter(self, record: logging.LogRecord) -> bool:
        _attach_context(record)
        return True


_base_record_factory = logging.getLogRecordFactory()


def _context_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _base_record_factory(*args, **kwargs)
    _attach_context(record)
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in vars(record).items() if key in STRUCTURED_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "ts": utcnow().isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None),
                "session_user": getattr(record, "session_user", None),
                "fields": fields,
            },
            default=str,
        )


def configure_logging(level_name: str | None = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_leadflow_configured", False):
        return

    level = getattr(logging, (level_name or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(ContextFilter())

    root.handlers.clear()
    root.filters.clear()
    root.setLevel(level)
    root.addHandler(handler)
    logging.setLogRecordFactory(_context_record_factory)
    root._leadflow_configured = True  # type: ignore[attr-defined]
