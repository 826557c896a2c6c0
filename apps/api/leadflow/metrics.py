from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request

METRICS_READ_ROLE = "system.metrics.read"

http_requests_total = Counter("http_requests_total", "Total HTTP requests", ["method", "path", "status"])
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds", "HTTP request duration in seconds", ["method", "path"]
)
workflow_structural_ops_total = Counter(
    "workflow_structural_ops_total",
    "Structural process/stage mutations by operation and outcome",
    ["operation", "outcome"],
)
reminder_ticks_total = Counter(
    "reminder_ticks_total", "Notification dispatcher ticks by kind and outcome", ["kind", "outcome"]
)
reminder_tick_duration_seconds = Histogram(
    "reminder_tick_duration_seconds", "Notification dispatcher tick duration in seconds", ["kind"]
)
reminder_alerts_total = Counter(
    "reminder_alerts_total", "Reminder alerts handed to the notification sink by outcome", ["outcome"]
)
user_cache_lookups_total = Counter("user_cache_lookups_total", "User directory cache lookups by result", ["result"])

# Raw paths only reach the label when no route matched; collapse ids so 404 scans stay low-cardinality.
_ID_SEGMENT = re.compile(r"/(?:[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}|\d+)(?=/|$)")
_ROUTE_PARAM = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    """Label a request by its route template (``/api/reminders/{id}``), never by the concrete path."""
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if isinstance(template, str) and template:
        return _ROUTE_PARAM.sub("{id}", template)
    return _ID_SEGMENT.sub("/{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_structural_op(operation: str, outcome: str) -> None:
    workflow_structural_ops_total.labels(operation=operation, outcome=outcome).inc()


def observe_tick(kind: str, outcome: str, duration: float) -> None:
    reminder_ticks_total.labels(kind=kind, outcome=outcome).inc()
    reminder_tick_duration_seconds.labels(kind=kind).observe(duration)


def observe_alert(outcome: str) -> None:
    reminder_alerts_total.labels(outcome=outcome).inc()


def observe_user_cache(result: str) -> None:
    user_cache_lookups_total.labels(result=result).inc()


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
