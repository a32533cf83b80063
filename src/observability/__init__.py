"""OpenTelemetry tracing for response-orchestrator."""

from src.observability.tracing import (
    TracingMiddleware,
    get_current_trace_id,
    get_tracer,
    inject_trace_context,
    setup_tracing,
)

__all__ = [
    "TracingMiddleware",
    "get_current_trace_id",
    "get_tracer",
    "inject_trace_context",
    "setup_tracing",
]
