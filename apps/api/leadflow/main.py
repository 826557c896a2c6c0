from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from leadflow.api.routes import router as api_router
from leadflow.core.config import get_settings
from leadflow.core.database import SessionLocal
from leadflow.core.events import InternalEvent, event_bus
from leadflow.logging import configure_logging
from leadflow.middleware.correlation_id import CorrelationIdMiddleware
from leadflow.middleware.request_logging import RequestLoggingMiddleware
from leadflow.notifications.session import session_registry
from leadflow.otel import get_fastapi_server_request_hook, setup_otel
from leadflow.workflow.seed import ensure_default_process_exists


configure_logging()
logger = logging.getLogger("leadflow.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def bootstrap_default_process() -> None:
    session = SessionLocal()
    try:
        result = ensure_default_process_exists(session)
    finally:
        session.close()
    logger.info(
        "workflow.bootstrap_complete",
        extra={"process_id": str(result.process.id), "event_name": "created" if result.created else "existing"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        _subscriptions_registered = True
    if get_settings().bootstrap_default_process:
        bootstrap_default_process()
    event_bus.publish("system.started", {"service": "api"})
    try:
        yield
    finally:
        stopped = session_registry.stop_all()
        logger.info("notifications.sessions_stopped", extra={"session_count": stopped})


app = FastAPI(title="Leadflow API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

settings = get_settings()

if settings.otel_enabled:
    setup_otel("leadflow-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
