from __future__ import annotations

import os
from typing import Any, Callable

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

CORRELATION_HEADER = b"x-correlation-id"

_provider: TracerProvider | None = None
_exporters_attached = False


def tracer_provider(service_name: str) -> TracerProvider:
    """Return the process-wide provider, installing it globally on first use."""
    global _provider
    if _provider is None:
        _provider = TracerProvider(
            resource=Resource.create(
                {"service.name": service_name, "service.version": os.getenv("APP_VERSION", "0.1.0")}
            )
        )
        trace.set_tracer_provider(_provider)
    return _provider


def _processors_from_env() -> list[SpanProcessor]:
    processors: list[SpanProcessor] = []
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true":
        processors.append(SimpleSpanProcessor(ConsoleSpanExporter()))
    return processors


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    global _exporters_attached
    if not enable:
        return None
    provider = tracer_provider(service_name)
    if not _exporters_attached:
        for processor in _processors_from_env():
            provider.add_span_processor(processor)
        _exporters_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "leadflow-api") -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    tracer_provider(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_fastapi_server_request_hook() -> Callable[[Any, dict[str, Any]], None]:
    def server_request_hook(span: Any, scope: dict[str, Any]) -> None:
        if span is None or not span.is_recording():
            return
        for name, value in scope.get("headers", []):
            if name.lower() == CORRELATION_HEADER and value:
                span.set_attribute("correlation_id", value.decode("utf-8", errors="replace"))
                return

    return server_request_hook
