"""httpx-based chat-completion transport.

Talks to any OpenAI-compatible ``/chat/completions`` endpoint (the Hugging
Face inference router by default). Every call carries the configured bearer
credential. Each call has its own timeout; nothing here retries.

Patterns applied:
- ChatTransport ABC implementation
- Lazily created, shared httpx.AsyncClient, closed via aclose()
- Async context manager for resource management
- Exception translation at the adapter boundary (httpx -> BackendCallError)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import SecretStr

from src.core.config import Settings
from src.core.exceptions import (
    BackendCallError,
    BackendTimeoutError,
    ConfigurationError,
    StreamInterruptedError,
)
from src.core.logging import get_logger
from src.models.requests import ChatCompletionRequest
from src.observability.tracing import get_tracer, inject_trace_context
from src.providers.base import ChatTransport
from src.providers.sse import iter_deltas


COMPLETIONS_PATH = "/chat/completions"

logger = get_logger(__name__)


class HttpChatTransport(ChatTransport):
    """OpenAI-compatible chat-completion transport over httpx.

    Args:
        base_url: API base URL, e.g. ``https://router.huggingface.co/v1``.
        api_key: Bearer credential.
        direct_timeout_s: Timeout for non-streaming calls.
        stream_timeout_s: Connect/read timeout for streaming calls.
        client: Pre-built client (tests inject one with httpx.MockTransport).

    Raises:
        ConfigurationError: ``base_url`` is not an http(s) URL.

    Example:
        >>> async with HttpChatTransport.from_settings(get_settings()) as t:
        ...     text = await t.complete(request)
    """

    def __init__(
        self,
        base_url: str,
        api_key: SecretStr | str | None,
        direct_timeout_s: float = 10.0,
        stream_timeout_s: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"api_base_url must be an http(s) URL, got '{base_url}'",
                setting="api_base_url",
            )
        self._base_url = base_url.rstrip("/")
        self._api_key = (
            api_key if isinstance(api_key, SecretStr) or api_key is None
            else SecretStr(api_key)
        )
        self._direct_timeout_s = direct_timeout_s
        self._stream_timeout_s = stream_timeout_s
        self._client = client
        self._owns_client = client is None
        self._tracer = get_tracer()

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpChatTransport:
        """Build a transport from application settings."""
        return cls(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            direct_timeout_s=settings.direct_timeout_s,
            stream_timeout_s=settings.stream_timeout_s,
        )

    # =========================================================================
    # Client lifecycle
    # =========================================================================

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpChatTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key is not None:
            headers["Authorization"] = f"Bearer {self._api_key.get_secret_value()}"
        return inject_trace_context(headers)

    # =========================================================================
    # Non-streaming
    # =========================================================================

    async def complete(self, request: ChatCompletionRequest) -> str:
        """POST one completion and return ``choices[0].message.content``."""
        payload = request.model_copy(update={"stream": False}).to_payload()

        with self._tracer.start_as_current_span("backend.complete") as span:
            span.set_attribute("llm.model", request.model)
            try:
                response = await self._get_client().post(
                    COMPLETIONS_PATH,
                    json=payload,
                    headers=self._headers(),
                    timeout=self._direct_timeout_s,
                )
            except httpx.TimeoutException as e:
                raise BackendTimeoutError(
                    f"Model {request.model} timed out after {self._direct_timeout_s}s",
                    model_id=request.model,
                    timeout_s=self._direct_timeout_s,
                ) from e
            except httpx.HTTPError as e:
                raise BackendCallError(
                    f"Model {request.model} failed: {e}",
                    model_id=request.model,
                ) from e

            span.set_attribute("http.status_code", response.status_code)
            if response.is_error:
                raise BackendCallError(
                    f"Model {request.model} failed: {response.status_code}",
                    model_id=request.model,
                    status_code=response.status_code,
                )

            try:
                data = response.json()
            except ValueError as e:
                raise BackendCallError(
                    f"Model {request.model} returned a non-JSON body",
                    model_id=request.model,
                    status_code=response.status_code,
                ) from e

        return _message_content(data)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def stream(  # type: ignore[override]
        self, request: ChatCompletionRequest
    ) -> AsyncIterator[str]:
        """POST a streaming completion and yield text deltas.

        The response is opened in an ``async with`` block, so the connection
        is released on normal end, on error and when the consumer stops
        iterating early (aclose/cancellation).
        """
        payload = request.model_copy(update={"stream": True}).to_payload()
        span = self._tracer.start_span("backend.stream")
        span.set_attribute("llm.model", request.model)
        started = False
        delivered = 0

        try:
            async with self._get_client().stream(
                "POST",
                COMPLETIONS_PATH,
                json=payload,
                headers=self._headers(),
                timeout=self._stream_timeout_s,
            ) as response:
                span.set_attribute("http.status_code", response.status_code)
                if response.is_error:
                    raise BackendCallError(
                        f"Model {request.model} failed: {response.status_code}",
                        model_id=request.model,
                        status_code=response.status_code,
                    )

                started = True
                async for delta in iter_deltas(response.aiter_text()):
                    delivered += 1
                    yield delta
        except httpx.TimeoutException as e:
            if started:
                raise StreamInterruptedError(
                    f"Stream from {request.model} stalled",
                    model_id=request.model,
                    chunks_delivered=delivered,
                ) from e
            raise BackendTimeoutError(
                f"Model {request.model} timed out after {self._stream_timeout_s}s",
                model_id=request.model,
                timeout_s=self._stream_timeout_s,
            ) from e
        except httpx.HTTPError as e:
            if started:
                raise StreamInterruptedError(
                    f"Stream from {request.model} interrupted: {e}",
                    model_id=request.model,
                    chunks_delivered=delivered,
                ) from e
            raise BackendCallError(
                f"Model {request.model} failed: {e}",
                model_id=request.model,
            ) from e
        finally:
            span.set_attribute("llm.stream.chunks", delivered)
            span.end()
            logger.debug(
                "Stream closed",
                model=request.model,
                chunks=delivered,
            )


def _message_content(data: Any) -> str:
    """Pull ``choices[0].message.content`` out of a completion payload."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""
