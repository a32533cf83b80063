"""Chat-completion transports.

Transports:
- base: ChatTransport ABC
- http_transport: HttpChatTransport (httpx, OpenAI-compatible)
- sse: SSEDecoder for streamed responses
"""

from src.providers.base import ChatTransport
from src.providers.http_transport import HttpChatTransport
from src.providers.sse import SSEDecoder


__all__: list[str] = [
    "ChatTransport",
    "HttpChatTransport",
    "SSEDecoder",
]
