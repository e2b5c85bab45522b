"""
promptstream - Observability Module

Structured JSON logging with context injection and OpenTelemetry tracing.

Usage:
    from promptstream.observability import setup_logging, setup_tracing

    setup_logging(level="DEBUG", json_output=False)
    setup_tracing(console_export=True)
"""

from .tracing import (
    TraceContext,
    TracingManager,
    get_tracer,
    setup_tracing,
)
from .logging import (
    StructuredLogger,
    get_logger,
    setup_logging,
    LogContext,
)

__all__ = [
    # Tracing
    "TraceContext",
    "TracingManager",
    "get_tracer",
    "setup_tracing",
    # Logging
    "StructuredLogger",
    "get_logger",
    "setup_logging",
    "LogContext",
]
