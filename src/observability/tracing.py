"""OpenTelemetry tracing for response-orchestrator.

Each top-level request gets a server span (TracingMiddleware); each backend
call made while serving it gets a child span carrying the model identifier.
Trace context is injected into outbound backend requests so an
OpenTelemetry-aware gateway can stitch the calls together.
"""

from typing import Any, Callable, Optional

from opentelemetry import trace
from opentelemetry.propagate import extract, inject
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.trace import SpanKind, Tracer

BACKEND_TRACER = "response_orchestrator.backend"
HTTP_TRACER = "response_orchestrator.http"

_tracer_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str = "response-orchestrator",
    otlp_endpoint: Optional[str] = None,
    exporter: Optional[SpanExporter] = None,
) -> TracerProvider:
    """Install a global TracerProvider.

    Args:
        service_name: Resource service name.
        otlp_endpoint: OTLP gRPC endpoint; requires the ``otlp`` extra.
            Console export otherwise.
        exporter: Explicit exporter, overriding both of the above.

    Returns:
        The configured TracerProvider.
    """
    global _tracer_provider

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name})
    )

    if exporter is None and otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)

    provider.add_span_processor(BatchSpanProcessor(exporter or ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def get_tracer(name: str = BACKEND_TRACER) -> Tracer:
    """Get a named tracer from the global provider (no-op until set up)."""
    return trace.get_tracer(name)


def get_current_trace_id() -> Optional[str]:
    """Current trace ID as 32 hex chars, or None outside a span."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.trace_id == 0:
        return None
    return format(span_context.trace_id, "032x")


def inject_trace_context(headers: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Add W3C trace-context headers for an outbound backend call."""
    carrier = headers if headers is not None else {}
    inject(carrier)
    return carrier


class TracingMiddleware:
    """ASGI middleware opening a server span per HTTP request."""

    def __init__(
        self,
        app: Callable[..., Any],
        exclude_paths: Optional[list[str]] = None,
    ) -> None:
        self.app = app
        self.exclude_paths = exclude_paths or []
        self.tracer = get_tracer(HTTP_TRACER)

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http" or scope.get("path") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "/")
        headers = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers", [])
        }
        status_code = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        with self.tracer.start_as_current_span(
            f"{method} {path}",
            context=extract(headers),
            kind=SpanKind.SERVER,
        ) as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.route", path)
            try:
                await self.app(scope, receive, send_wrapper)
            except Exception as e:
                span.record_exception(e)
                raise
            finally:
                span.set_attribute("http.status_code", status_code)
