"""Logging and OpenTelemetry setup."""

import logging
import sys

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio

from src.infrastructure.observability.structlog_processor import (
    add_trace_context,
    redact_secrets,
)

# Module-level state for cleanup
_tracer_provider: TracerProvider | None = None
_httpx_instrumented: bool = False
_initialized: bool = False


def init_observability(
    service_name: str,
    service_version: str,
    *,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    enabled: bool = True,
    sample_rate: float = 1.0,
    log_level: str = "INFO",
    log_json: bool = False,
) -> None:
    """Configure structlog and, when enabled, OpenTelemetry tracing.

    Logging is always configured. Tracing installs a global tracer provider
    with the requested exporters and instruments outgoing httpx calls, so
    every provider request shows up as a child of its ``llm.attempt`` span.

    Args:
        service_name: Name of the service for resource attribution.
        service_version: Version of the service.
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4318").
        console_export: If True, export spans to the console.
        enabled: If False, tracing is disabled (no-op provider).
        sample_rate: Sampling rate between 0.0 and 1.0.
        log_level: Minimum level for log output.
        log_json: Render log lines as JSON instead of the console format.
    """
    global _tracer_provider, _httpx_instrumented, _initialized

    if _initialized:
        return

    _configure_structlog(log_level=log_level, log_json=log_json)

    if not enabled:
        trace.set_tracer_provider(trace.NoOpTracerProvider())
        _initialized = True
        return

    resource = Resource.create(
        {
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        }
    )
    _tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBasedTraceIdRatio(sample_rate),
    )

    if console_export:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=f"{otlp_endpoint.rstrip('/')}/v1/traces")
        _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(_tracer_provider)

    HTTPXClientInstrumentor().instrument()
    _httpx_instrumented = True

    _initialized = True


def shutdown_observability() -> None:
    """Flush pending spans and undo httpx instrumentation.

    Call during shutdown so spans are exported before the process exits.
    """
    global _tracer_provider, _httpx_instrumented, _initialized

    if _httpx_instrumented:
        HTTPXClientInstrumentor().uninstrument()
        _httpx_instrumented = False

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None

    _initialized = False


def _configure_structlog(*, log_level: str, log_json: bool) -> None:
    """Configure structlog with trace context and secret redaction."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_trace_context,
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
