"""Custom exceptions for response-orchestrator.

Exception Hierarchy:
    OrchestratorError (base)
    ├── RetriableError (transient errors)
    │   ├── BackendCallError
    │   │   └── BackendTimeoutError
    │   └── StreamInterruptedError
    └── NonRetriableError (permanent errors)
        ├── NoValidResponsesError
        ├── AllBackendsFailedError
        ├── InvalidStateTransitionError
        └── ConfigurationError

Per-backend failures (BackendCallError) are recovered locally by dropping
the candidate. NoValidResponsesError is caught by the orchestrator and routed
to the fallback policy. AllBackendsFailedError and StreamInterruptedError are
the only errors a caller of the orchestrator has to handle.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """Error codes for response-orchestrator exceptions.

    These codes provide a consistent way to identify error types
    across the API and in logging.
    """

    # Base error
    ORCHESTRATOR_ERROR = "ORCHESTRATOR_ERROR"

    # Retriable errors
    BACKEND_CALL_FAILED = "BACKEND_CALL_FAILED"
    BACKEND_TIMEOUT = "BACKEND_TIMEOUT"
    STREAM_INTERRUPTED = "STREAM_INTERRUPTED"

    # Non-retriable errors
    NO_VALID_RESPONSES = "NO_VALID_RESPONSES"
    ALL_BACKENDS_FAILED = "ALL_BACKENDS_FAILED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class OrchestratorError(Exception):
    """Base exception for all response-orchestrator errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.ORCHESTRATOR_ERROR,
        **kwargs: Any,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )

        for key, value in kwargs.items():
            setattr(self, key, value)


class RetriableError(OrchestratorError):
    """Base class for transient errors that may succeed on a later request.

    Nothing inside the orchestrator retries these; the hint is for callers.

    Attributes:
        retry_after_ms: Suggested retry delay in milliseconds.
    """

    def __init__(
        self,
        message: str,
        retry_after_ms: int = 1000,
        error_code: str | ErrorCode = ErrorCode.ORCHESTRATOR_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.retry_after_ms = retry_after_ms


class NonRetriableError(OrchestratorError):
    """Base class for permanent errors that should not be retried."""


# =============================================================================
# Retriable Exceptions
# =============================================================================


class BackendCallError(RetriableError):
    """A single chat-completion call failed (non-2xx, network, bad payload).

    Attributes:
        model_id: Backend identifier that failed.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self,
        message: str,
        model_id: str | None = None,
        status_code: int | None = None,
        retry_after_ms: int = 1000,
        error_code: str | ErrorCode = ErrorCode.BACKEND_CALL_FAILED,
        **kwargs: Any,
    ) -> None:
        """Initialize BackendCallError.

        Args:
            message: Error message.
            model_id: Backend identifier that failed.
            status_code: HTTP status code, if any.
            retry_after_ms: Suggested retry delay.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes.
        """
        super().__init__(
            message,
            retry_after_ms=retry_after_ms,
            error_code=error_code,
            **kwargs,
        )
        self.model_id = model_id
        self.status_code = status_code


class BackendTimeoutError(BackendCallError):
    """A backend call exceeded its own timeout scope.

    Attributes:
        timeout_s: The timeout that was exceeded, in seconds.
    """

    def __init__(
        self,
        message: str,
        model_id: str | None = None,
        timeout_s: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            model_id=model_id,
            error_code=ErrorCode.BACKEND_TIMEOUT,
            **kwargs,
        )
        self.timeout_s = timeout_s


class StreamInterruptedError(RetriableError):
    """A streaming call failed after it had started delivering deltas.

    Deltas already handed to the caller are not replayed.

    Attributes:
        model_id: Backend identifier of the stream.
        chunks_delivered: Number of deltas delivered before the failure.
    """

    def __init__(
        self,
        message: str,
        model_id: str | None = None,
        chunks_delivered: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.STREAM_INTERRUPTED,
            **kwargs,
        )
        self.model_id = model_id
        self.chunks_delivered = chunks_delivered


# =============================================================================
# Non-Retriable Exceptions
# =============================================================================


class NoValidResponsesError(NonRetriableError):
    """Fan-out finished with zero usable candidates.

    Attributes:
        attempted_models: Backends that were called.
    """

    def __init__(
        self,
        message: str = "No models returned valid responses",
        attempted_models: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.NO_VALID_RESPONSES,
            **kwargs,
        )
        self.attempted_models = attempted_models


class AllBackendsFailedError(NonRetriableError):
    """The fallback backend failed too; there is no further degradation path.

    Attributes:
        model_id: The fallback backend that failed.
    """

    def __init__(
        self,
        message: str = "All models failed",
        model_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.ALL_BACKENDS_FAILED,
            **kwargs,
        )
        self.model_id = model_id


class InvalidStateTransitionError(NonRetriableError):
    """An orchestration run tried to move to a state it may not enter.

    Attributes:
        current_state: State the run was in.
        target_state: State that was requested.
    """

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        target_state: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            **kwargs,
        )
        self.current_state = current_state
        self.target_state = target_state


class ConfigurationError(NonRetriableError):
    """Service configuration is invalid.

    Attributes:
        setting: Name of the problematic setting.
    """

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            **kwargs,
        )
        self.setting = setting
