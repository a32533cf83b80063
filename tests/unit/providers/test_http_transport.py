"""Tests for HttpChatTransport using httpx.MockTransport.

Tests verify:
- Non-streaming calls POST /chat/completions with the bearer credential
- HTTP, network and payload failures map to BackendCallError
- Timeouts map to BackendTimeoutError
- Streaming yields deltas and stops at [DONE]
- Failures after the stream started map to StreamInterruptedError
- Injected clients are not closed by the transport
"""

import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from src.core.config import Settings
from src.core.exceptions import (
    BackendCallError,
    BackendTimeoutError,
    ConfigurationError,
    StreamInterruptedError,
)
from src.models.requests import ChatCompletionRequest
from src.providers.http_transport import HttpChatTransport


BASE_URL = "http://backend.test/v1"


def completion_body(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def sse_frame(content: str) -> bytes:
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n".encode()


class FailingStream(httpx.AsyncByteStream):
    """Body that yields some frames, then fails with a network error."""

    def __init__(self, frames: list[bytes]) -> None:
        self._frames = frames

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for f in self._frames:
            yield f
        raise httpx.ReadError("connection reset")


def make_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    api_key: str | None = "test-key",
) -> tuple[HttpChatTransport, httpx.AsyncClient]:
    client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(handler)
    )
    return HttpChatTransport(BASE_URL, api_key, client=client), client


@pytest.fixture
def request_() -> ChatCompletionRequest:
    return ChatCompletionRequest.from_prompt("model-a", "Hello", temperature=0.3)


# =============================================================================
# complete()
# =============================================================================


class TestComplete:
    """Non-streaming calls."""

    async def test_returns_message_content(self, request_: ChatCompletionRequest) -> None:
        """choices[0].message.content is returned."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion_body("Hi!"))

        transport, _ = make_transport(handler)
        assert await transport.complete(request_) == "Hi!"

        sent = seen[0]
        assert sent.method == "POST"
        assert sent.url.path == "/v1/chat/completions"
        assert sent.headers["Authorization"] == "Bearer test-key"
        body = json.loads(sent.content)
        assert body["model"] == "model-a"
        assert body["stream"] is False
        assert body["temperature"] == 0.3
        assert body["messages"] == [{"role": "user", "content": "Hello"}]

    async def test_no_credential_no_header(self, request_: ChatCompletionRequest) -> None:
        """Without a credential no Authorization header is sent."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion_body("x"))

        transport, _ = make_transport(handler, api_key=None)
        await transport.complete(request_)
        assert "Authorization" not in seen[0].headers

    async def test_missing_content_is_empty(self, request_: ChatCompletionRequest) -> None:
        """A payload without content yields an empty string."""
        transport, _ = make_transport(lambda r: httpx.Response(200, json={"choices": []}))
        assert await transport.complete(request_) == ""

    async def test_http_error_status(self, request_: ChatCompletionRequest) -> None:
        """Non-2xx statuses raise BackendCallError with the status."""
        transport, _ = make_transport(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(BackendCallError) as exc_info:
            await transport.complete(request_)
        assert exc_info.value.status_code == 503
        assert exc_info.value.model_id == "model-a"
        assert "503" in exc_info.value.message

    async def test_non_json_body(self, request_: ChatCompletionRequest) -> None:
        """A 200 with a non-JSON body raises BackendCallError."""
        transport, _ = make_transport(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(BackendCallError):
            await transport.complete(request_)

    async def test_network_error(self, request_: ChatCompletionRequest) -> None:
        """Connection failures raise BackendCallError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport, _ = make_transport(handler)
        with pytest.raises(BackendCallError) as exc_info:
            await transport.complete(request_)
        assert not isinstance(exc_info.value, BackendTimeoutError)

    async def test_timeout(self, request_: ChatCompletionRequest) -> None:
        """httpx timeouts raise BackendTimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        transport, _ = make_transport(handler)
        with pytest.raises(BackendTimeoutError) as exc_info:
            await transport.complete(request_)
        assert exc_info.value.timeout_s == 10.0


# =============================================================================
# stream()
# =============================================================================


class TestStream:
    """Streaming calls."""

    async def test_yields_deltas_until_done(self, request_: ChatCompletionRequest) -> None:
        """Deltas arrive in order; frames after [DONE] are ignored."""
        seen: list[httpx.Request] = []
        body = sse_frame("Hel") + sse_frame("lo") + b"data: [DONE]\n\n" + sse_frame("!")

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, content=body, headers={"Content-Type": "text/event-stream"}
            )

        transport, _ = make_transport(handler)
        deltas = [d async for d in transport.stream(request_)]

        assert deltas == ["Hel", "lo"]
        assert json.loads(seen[0].content)["stream"] is True

    async def test_error_status_before_start(self, request_: ChatCompletionRequest) -> None:
        """A non-2xx status raises BackendCallError before any delta."""
        transport, _ = make_transport(lambda r: httpx.Response(401, text="no"))
        with pytest.raises(BackendCallError) as exc_info:
            async for _ in transport.stream(request_):
                pass
        assert exc_info.value.status_code == 401

    async def test_connect_failure(self, request_: ChatCompletionRequest) -> None:
        """A connection failure is a BackendCallError, not an interruption."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport, _ = make_transport(handler)
        with pytest.raises(BackendCallError):
            async for _ in transport.stream(request_):
                pass

    async def test_failure_after_start(self, request_: ChatCompletionRequest) -> None:
        """A mid-stream failure raises StreamInterruptedError with the count."""
        transport, _ = make_transport(
            lambda r: httpx.Response(
                200, stream=FailingStream([sse_frame("a"), sse_frame("b")])
            )
        )
        received: list[str] = []
        with pytest.raises(StreamInterruptedError) as exc_info:
            async for delta in transport.stream(request_):
                received.append(delta)

        assert received == ["a", "b"]
        assert exc_info.value.chunks_delivered == 2

    async def test_early_exit_closes_cleanly(self, request_: ChatCompletionRequest) -> None:
        """Closing the iterator early does not raise."""
        body = sse_frame("a") + sse_frame("b") + b"data: [DONE]\n\n"
        transport, _ = make_transport(lambda r: httpx.Response(200, content=body))

        deltas = transport.stream(request_)
        assert await deltas.__anext__() == "a"
        await deltas.aclose()


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Client ownership."""

    async def test_injected_client_not_closed(self) -> None:
        """aclose() leaves an injected client open."""
        transport, client = make_transport(lambda r: httpx.Response(200, json={}))
        await transport.aclose()
        assert not client.is_closed
        await client.aclose()

    async def test_owned_client_closed(self) -> None:
        """A lazily created client is closed on exit."""
        async with HttpChatTransport(BASE_URL, "k") as transport:
            client = transport._get_client()
        assert client.is_closed

    def test_from_settings(self, settings: Settings) -> None:
        """Settings supply base URL, credential and timeouts."""
        transport = HttpChatTransport.from_settings(settings)
        assert transport._base_url == settings.api_base_url
        assert transport._direct_timeout_s == settings.direct_timeout_s
        assert transport._stream_timeout_s == settings.stream_timeout_s

    @pytest.mark.parametrize("base_url", ["", "router.example/v1", "ftp://x/v1"])
    def test_invalid_base_url(self, base_url: str) -> None:
        """A non-http(s) base URL is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            HttpChatTransport(base_url, "k")
        assert exc_info.value.setting == "api_base_url"
