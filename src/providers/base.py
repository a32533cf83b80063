"""Base class for chat-completion transports.

Defines the ChatTransport ABC that the orchestration components depend on.
HttpChatTransport is the production adapter; tests substitute in-memory
implementations. complete_within() puts a total deadline on one
non-streaming call.

Patterns applied:
- ABC with @abstractmethod decorator
- AsyncIterator for streaming (not AsyncGenerator)
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from src.core.exceptions import BackendTimeoutError
from src.models.requests import ChatCompletionRequest


class ChatTransport(ABC):
    """Abstract chat-completion transport.

    The orchestration layer is the "port" consumer; concrete transports are
    the adapters. A transport performs exactly one call per method
    invocation and never retries.

    Example:
        class MyTransport(ChatTransport):
            async def complete(self, request):
                return "text"

            async def stream(self, request):
                yield "te"
                yield "xt"
    """

    @abstractmethod
    async def complete(self, request: ChatCompletionRequest) -> str:
        """Perform a non-streaming completion.

        Args:
            request: Chat completion request (``stream`` is ignored).

        Returns:
            ``choices[0].message.content``, or "" when the backend sent none.

        Raises:
            BackendCallError: Non-success status, network or payload error.
            BackendTimeoutError: The call exceeded its timeout.
        """
        ...

    @abstractmethod
    def stream(self, request: ChatCompletionRequest) -> AsyncIterator[str]:
        """Perform a streaming completion.

        Yields each non-empty ``choices[0].delta.content`` in arrival order
        and stops at the terminal sentinel. Exiting the iterator early
        (break, cancellation, aclose) must release the connection.

        Args:
            request: Chat completion request (sent with ``stream: true``).

        Yields:
            Text deltas, per chunk, not cumulative.

        Raises:
            BackendCallError: Non-success status or failure before any delta.
            StreamInterruptedError: Failure after the stream started.
        """
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release pooled resources. Default implementation does nothing."""


async def complete_within(
    transport: ChatTransport,
    request: ChatCompletionRequest,
    timeout_s: float,
) -> str:
    """Run ``transport.complete`` under a hard deadline.

    The transport's own timeouts are per phase; this bounds the whole call.

    Raises:
        BackendTimeoutError: The call did not finish within ``timeout_s``.
        BackendCallError: Propagated from the transport.
    """
    try:
        return await asyncio.wait_for(transport.complete(request), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise BackendTimeoutError(
            f"Model {request.model} timed out after {timeout_s}s",
            model_id=request.model,
            timeout_s=timeout_s,
        ) from e
