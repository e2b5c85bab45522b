"""
promptstream - OpenTelemetry Tracing

Spans for response lifecycles and backend calls.

The library only talks to the OpenTelemetry API. Until the host application
installs a tracer provider (or calls ``setup_tracing``), every span is a no-op.

Usage:
    from promptstream.observability.tracing import setup_tracing, get_tracer

    setup_tracing(console_export=True)

    tracer = get_tracer()
    with tracer.start_as_current_span("operation_name") as span:
        span.set_attribute("key", "value")
"""

import os
from typing import Optional, Dict, Any
from contextlib import contextmanager
from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from .. import __version__

TRACER_NAME = "promptstream"


@dataclass
class TraceContext:
    """Trace identifiers of a span, formatted for logs."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> Optional["TraceContext"]:
        """Create TraceContext from a span, or None for a non-recording span."""
        ctx = span.get_span_context()
        if not ctx.is_valid:
            return None
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )


class TracingManager:
    """Owns an SDK tracer provider installed by ``setup_tracing``."""

    def __init__(
        self,
        service_name: str = "promptstream",
        service_version: str = __version__,
        console_export: bool = False,
        span_processor=None,
    ):
        """
        Initialize tracing.

        Args:
            service_name: Name of the service
            service_version: Version of the service
            console_export: Whether to export spans to console (for debugging)
            span_processor: Additional span processor (e.g. an in-memory exporter in tests)
        """
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        })
        self.provider = TracerProvider(resource=resource)

        if console_export:
            self.provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        if span_processor is not None:
            self.provider.add_span_processor(span_processor)

        trace.set_tracer_provider(self.provider)

    def get_tracer(self) -> trace.Tracer:
        return self.provider.get_tracer(TRACER_NAME, __version__)

    def shutdown(self):
        """Shutdown the tracer provider."""
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "promptstream",
    console_export: bool = False,
    span_processor=None,
) -> TracingManager:
    """
    Install an SDK tracer provider.

    Call once at application startup, and only when the host application has
    not configured OpenTelemetry itself.

    Args:
        service_name: Name of the service
        console_export: Enable console export for debugging
        span_processor: Additional span processor

    Returns:
        TracingManager instance
    """
    global _tracing_instance

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        console_export=console_export,
        span_processor=span_processor,
    )
    return _tracing_instance


def get_tracer() -> trace.Tracer:
    """
    Get the promptstream tracer.

    Resolved through the global provider on every call so a provider installed
    after import is still picked up.
    """
    if _tracing_instance is not None:
        return _tracing_instance.get_tracer()
    return trace.get_tracer(TRACER_NAME, __version__)


def start_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Dict[str, Any]] = None,
) -> Span:
    """
    Start a span that is not attached to the current context.

    Used for response lifecycles, which outlive the call that created them.
    The caller must ``end()`` it.
    """
    return get_tracer().start_span(name, kind=kind, attributes=attributes)


def record_exception(span: Span, exception: BaseException):
    """Record an exception on a span and mark it failed."""
    span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


@contextmanager
def trace_backend_call(backend: str, model: str, operation: str = "stream"):
    """
    Context manager for tracing backend API calls.

    Usage:
        with trace_backend_call("openai", "gpt-4o-mini") as span:
            source = await backend.start_stream(...)
    """
    with get_tracer().start_as_current_span(
        name=f"{backend}.{operation}",
        kind=SpanKind.CLIENT,
        attributes={
            "llm.backend": backend,
            "llm.model": model,
            "llm.operation": operation,
        },
    ) as span:
        yield span
