"""Error handlers for FastAPI exception handling.

Error Response Schema:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable message",
        "type": "retriable|non_retriable",
        "provider": "response-orchestrator",
        "details": {...}
    }
}
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.exceptions import (
    AllBackendsFailedError,
    BackendTimeoutError,
    ConfigurationError,
    ErrorCode,
    NonRetriableError,
    OrchestratorError,
    RetriableError,
)
from src.core.logging import get_logger


PROVIDER_NAME = "response-orchestrator"

logger = get_logger(__name__)


# =============================================================================
# Error Response Models (Pydantic)
# =============================================================================


class ErrorDetail(BaseModel):
    """Error detail schema.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable error message.
        type: Error type (retriable or non_retriable).
        provider: Service that generated the error.
        details: Additional error-specific information.
    """

    code: str
    message: str
    type: str
    provider: str = PROVIDER_NAME
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error response wrapper."""

    error: ErrorDetail


# =============================================================================
# Status Code Mapping
# =============================================================================


def get_status_code_for_error(error: Exception) -> int:
    """Determine HTTP status code based on exception type."""
    if isinstance(error, BackendTimeoutError):
        return 504
    if isinstance(error, AllBackendsFailedError):
        return 502
    if isinstance(error, RetriableError):
        return 503
    if isinstance(error, ConfigurationError):
        return 500
    if isinstance(error, OrchestratorError):
        return 500
    return 500


_DETAIL_ATTRS = (
    "model_id",
    "status_code",
    "timeout_s",
    "chunks_delivered",
    "attempted_models",
    "current_state",
    "target_state",
    "setting",
)


def extract_error_details(error: Exception) -> dict[str, Any]:
    """Collect known, non-None attributes from an exception."""
    return {
        attr: getattr(error, attr)
        for attr in _DETAIL_ATTRS
        if getattr(error, attr, None) is not None
    }


def build_error_response(
    error: Exception,
    error_type: str = "non_retriable",
) -> ErrorResponse:
    """Build a standardized error response."""
    code = getattr(error, "error_code", ErrorCode.ORCHESTRATOR_ERROR.value)
    message = getattr(error, "message", str(error))
    details = extract_error_details(error)

    return ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            type=error_type,
            details=details or None,
        )
    )


# =============================================================================
# Exception Handlers
# =============================================================================


async def retriable_error_handler(
    _request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle RetriableError with a Retry-After header."""
    if not isinstance(exc, RetriableError):
        return generic_error_handler(_request, exc)

    retry_after_seconds = max(1, exc.retry_after_ms // 1000)
    return JSONResponse(
        status_code=get_status_code_for_error(exc),
        content=build_error_response(exc, "retriable").model_dump(),
        headers={"Retry-After": str(retry_after_seconds)},
    )


async def non_retriable_error_handler(
    _request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle NonRetriableError exceptions."""
    if not isinstance(exc, NonRetriableError):
        return generic_error_handler(_request, exc)

    return JSONResponse(
        status_code=get_status_code_for_error(exc),
        content=build_error_response(exc, "non_retriable").model_dump(),
    )


async def orchestrator_error_handler(
    _request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle any other OrchestratorError."""
    if not isinstance(exc, OrchestratorError):
        return generic_error_handler(_request, exc)

    return JSONResponse(
        status_code=get_status_code_for_error(exc),
        content=build_error_response(exc, "non_retriable").model_dump(),
    )


def generic_error_handler(
    _request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions with a 500."""
    logger.error("Unhandled error", error=str(exc), error_type=type(exc).__name__)
    response = ErrorResponse(
        error=ErrorDetail(
            code=ErrorCode.ORCHESTRATOR_ERROR.value,
            message=f"Internal server error: {exc!s}",
            type="non_retriable",
        )
    )
    return JSONResponse(status_code=500, content=response.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(RetriableError, retriable_error_handler)
    app.add_exception_handler(NonRetriableError, non_retriable_error_handler)
    app.add_exception_handler(OrchestratorError, orchestrator_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)
