"""Server-sent-event decoding for streamed chat completions.

SSEDecoder is an explicit state object: it buffers partial lines across
network chunks, turns complete ``data:`` frames into text deltas and latches
once the ``[DONE]`` sentinel is seen. It is not restartable; a
finished decoder ignores further input.

Frame format (OpenAI-compatible):

    data: {"choices": [{"delta": {"content": "Hel"}}]}

    data: [DONE]
"""

import json
from collections.abc import AsyncIterable, AsyncIterator


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_delta(payload: str) -> str | None:
    """Return ``choices[0].delta.content`` from one frame payload.

    Returns None for malformed JSON or frames without text (role-only
    deltas, finish frames).
    """
    try:
        parsed = json.loads(payload)
    except ValueError:
        return None

    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class SSEDecoder:
    """Incremental decoder from raw text chunks to content deltas.

    Attributes:
        done: True once the terminal sentinel has been decoded.
        skipped_frames: Number of malformed ``data:`` frames ignored.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.done = False
        self.skipped_frames = 0

    def feed(self, text: str) -> list[str]:
        """Consume a chunk of the body and return the deltas it completes.

        Partial trailing lines are kept until the next feed(). Nothing is
        returned after the sentinel, including deltas that followed it in
        the same chunk.
        """
        if self.done:
            return []

        self._buffer += text
        deltas: list[str] = []

        while not self.done:
            line_end = self._buffer.find("\n")
            if line_end == -1:
                break
            line = self._buffer[:line_end].strip()
            self._buffer = self._buffer[line_end + 1 :]
            delta = self._decode_line(line)
            if delta is not None:
                deltas.append(delta)

        return deltas

    def flush(self) -> list[str]:
        """Decode a final unterminated line once the body has ended."""
        if self.done or not self._buffer.strip():
            self._buffer = ""
            return []
        line = self._buffer.strip()
        self._buffer = ""
        delta = self._decode_line(line)
        return [delta] if delta is not None else []

    def _decode_line(self, line: str) -> str | None:
        if not line.startswith(DATA_PREFIX):
            # comments (":"), event:/id:/retry: fields and blank separators
            return None

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return None

        delta = extract_delta(payload)
        if delta is None and not _is_textless_frame(payload):
            self.skipped_frames += 1
        return delta


def _is_textless_frame(payload: str) -> bool:
    """Valid JSON frames without content (role or finish frames)."""
    try:
        json.loads(payload)
    except ValueError:
        return False
    return True


async def iter_deltas(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """Drive an SSEDecoder over an async stream of body text.

    Stops pulling from ``chunks`` as soon as the sentinel is decoded.
    """
    decoder = SSEDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return
    for delta in decoder.flush():
        yield delta
