"""Streaming adapter - relay one backend's token stream to a callback.

Used for conversational refinement, where incremental display matters more
than ranking. No fan-out, no judge, no fallback: exactly one backend, one
connection.

Flow:
    prompt (+ task type, goal) → streaming backend → deltas → on_chunk(delta)

The transport's delta iterator is wrapped in ``contextlib.aclosing`` so the
connection is released on normal end, on error and when the caller cancels
the awaiting task; after any of those no further callback fires.
"""

import inspect
from collections.abc import Awaitable, Callable
from contextlib import aclosing

from src.core.logging import get_logger
from src.models.context import TaskContext
from src.models.requests import ChatCompletionRequest
from src.providers.base import ChatTransport


logger = get_logger(__name__)

ChunkCallback = Callable[[str], Awaitable[None] | None]

STREAM_TEMPERATURE = 0.7
DEFAULT_STREAM_TASK = "content creation"

STREAM_PROMPT_TEMPLATE = """You are an AI assistant helping with {task_type}.
{goal_line}
User request: {prompt}

Provide a thoughtful, helpful response."""


class StreamingAdapter:
    """Drive a per-chunk callback from one streaming backend call.

    Args:
        transport: Chat transport.
        streaming_model: Backend used for streaming.
        max_tokens: Completion cap.
    """

    def __init__(
        self,
        transport: ChatTransport,
        streaming_model: str,
        max_tokens: int = 500,
    ) -> None:
        self._transport = transport
        self._streaming_model = streaming_model
        self._max_tokens = max_tokens

    def build_prompt(self, prompt: str, context: TaskContext | None = None) -> str:
        task_type = (
            context.task_type.value
            if context and context.task_type
            else DEFAULT_STREAM_TASK
        )
        goal_line = f"Goal: {context.goal}\n" if context and context.goal else ""
        return STREAM_PROMPT_TEMPLATE.format(
            task_type=task_type, goal_line=goal_line, prompt=prompt
        )

    async def stream(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        context: TaskContext | None = None,
    ) -> int:
        """Stream a response into ``on_chunk``, one delta per call.

        ``on_chunk`` may be a plain function or a coroutine function; an
        async callback is awaited before the next delta is read.

        Returns:
            Number of deltas delivered.

        Raises:
            BackendCallError: The stream could not be opened.
            StreamInterruptedError: The stream failed after it started;
                deltas delivered so far are not replayed.
        """
        request = ChatCompletionRequest.from_prompt(
            self._streaming_model,
            self.build_prompt(prompt, context),
            temperature=STREAM_TEMPERATURE,
            max_tokens=self._max_tokens,
            stream=True,
        )
        delivered = 0

        async with aclosing(self._transport.stream(request)) as deltas:
            async for delta in deltas:
                result = on_chunk(delta)
                if inspect.isawaitable(result):
                    await result
                delivered += 1

        logger.info(
            "Stream complete", model=self._streaming_model, chunks=delivered
        )
        return delivered
