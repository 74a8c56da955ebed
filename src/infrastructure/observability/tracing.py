"""Tracing helpers for the completion pipeline."""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

P = ParamSpec("P")
R = TypeVar("R")

AttributeValue = str | int | float | bool


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the given module name.

    Args:
        name: Module name, typically __name__.

    Returns:
        A Tracer instance for creating spans.
    """
    return trace.get_tracer(name)


def add_span_attributes(attributes: dict[str, AttributeValue | None]) -> None:
    """Add attributes to the current span, skipping None values."""
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)


def get_current_trace_id() -> str | None:
    """Get the current trace ID as a 32-character hex string, if any."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        return format(span_context.trace_id, "032x")
    return None


@overload
def traced(  # noqa: UP047
    func: Callable[P, R],
) -> Callable[P, R]: ...


@overload
def traced(
    func: None = None,
    *,
    span_name: str | None = None,
    attributes: dict[str, AttributeValue] | None = None,
    record_exception: bool = True,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(  # noqa: UP047
    func: Callable[P, R] | None = None,
    *,
    span_name: str | None = None,
    attributes: dict[str, AttributeValue] | None = None,
    record_exception: bool = True,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Run a sync or async function inside its own span.

    The tracer is looked up on every call, so a provider installed after
    decoration (tests, late ``init_observability``) is picked up.

    Examples:
        @traced
        def split(text): ...

        @traced(span_name="chat.ask", attributes={"component": "chat"})
        async def ask(prompt): ...
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        name = span_name or fn.__qualname__

        def start_span() -> Any:
            span = get_tracer(fn.__module__).start_as_current_span(
                name, record_exception=False, set_status_on_exception=False
            )
            return span

        def fail(span: Any, error: Exception) -> None:
            if record_exception:
                span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, type(error).__name__))

        if inspect.iscoroutinefunction(fn):

            @wraps(fn)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                with start_span() as span:
                    if attributes:
                        span.set_attributes(attributes)
                    try:
                        return await fn(*args, **kwargs)
                    except Exception as e:
                        fail(span, e)
                        raise

            return async_wrapper  # type: ignore[return-value]

        @wraps(fn)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with start_span() as span:
                if attributes:
                    span.set_attributes(attributes)
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    fail(span, e)
                    raise

        return sync_wrapper

    if func is not None:
        return decorator(func)
    return decorator
