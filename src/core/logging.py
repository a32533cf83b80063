"""Structured logging module for response-orchestrator.

Provides JSON-formatted structured logging using structlog. Every top-level
orchestration request gets a request ID stored in a ContextVar, so all log
lines emitted while serving it (router, fan-out calls, judge, synthesis,
fallback) carry the same ``request_id`` field. asyncio tasks copy the
current context when created, so fan-out calls inherit it.
"""

import contextvars
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog
from structlog.types import EventDict


_configured: bool = False

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)

_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


# =============================================================================
# Request ID Context
# =============================================================================
def new_request_id() -> str:
    """Create a request ID without binding it."""
    return f"orch-{uuid.uuid4().hex[:12]}"


@contextmanager
def request_scope(request_id: str | None = None) -> Iterator[str]:
    """Bind a request ID for the duration of the block.

    The previous binding is restored on exit, so log lines emitted after the
    request finished do not carry its ID.

    Example:
        with request_scope() as request_id:
            logger.info("Working")  # carries request_id
    """
    bound = request_id or new_request_id()
    token = _request_id_var.set(bound)
    try:
        yield bound
    finally:
        _request_id_var.reset(token)


def get_request_id() -> str | None:
    """Get the request ID bound to the current context, if any."""
    return _request_id_var.get()


def add_request_id(
    _logger: object, _method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor adding ``request_id`` when one is bound."""
    request_id = get_request_id()
    if request_id is not None:
        event_dict["request_id"] = request_id
    return event_dict


# =============================================================================
# Configuration
# =============================================================================
def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    force: bool = False,
) -> None:
    """Configure structlog once at startup.

    Subsequent calls are no-ops unless force=True (for testing).

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Output stream. Defaults to sys.stdout.
        force: Force reconfiguration.
    """
    global _configured

    if _configured and not force:
        return

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        add_request_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level.upper(), 20)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )

    _configured = True


def reset_logging() -> None:
    """Reset configuration state so tests can reconfigure."""
    global _configured
    _configured = False


def get_logger(name: str) -> Any:
    """Get a structlog logger bound to ``name``.

    Auto-configures with defaults if configure_logging() was never called.
    """
    configure_logging()
    return structlog.get_logger().bind(logger=name)
