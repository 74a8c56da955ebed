"""Structlog processors for trace context and secret redaction."""

from typing import Any

from opentelemetry import trace

REDACTED = "***"

_SECRET_MARKERS = ("api_key", "apikey", "authorization", "token", "secret", "password")


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds trace_id and span_id to log events.

    Args:
        logger: The logger instance (unused, required by structlog API).
        method_name: The log method name (unused, required by structlog API).
        event_dict: The log event dictionary to enrich.

    Returns:
        The enriched event dictionary with trace_id and span_id if available.
    """
    span = trace.get_current_span()
    span_context = span.get_span_context()

    if span_context.is_valid:
        event_dict["trace_id"] = format(span_context.trace_id, "032x")
        event_dict["span_id"] = format(span_context.span_id, "016x")

    return event_dict


def _looks_secret(key: str) -> bool:
    lowered = key.lower()
    # token counts (max_tokens, prompt_tokens) are not secrets
    if lowered.endswith("tokens"):
        return False
    return any(marker in lowered for marker in _SECRET_MARKERS)


def redact_secrets(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that masks values of secret-looking keys.

    Nested mappings (for example a headers dict) are masked as well.
    """
    return _redact(event_dict)


def _redact(mapping: dict[str, Any]) -> dict[str, Any]:
    for key, value in mapping.items():
        if _looks_secret(str(key)) and value is not None:
            mapping[key] = REDACTED
        elif isinstance(value, dict):
            mapping[key] = _redact(dict(value))
    return mapping
