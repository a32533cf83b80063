"""Request models.

ChatCompletionRequest is the payload of the depended-upon chat-completion
transport (OpenAI-compatible). OrchestrateRequest is what external callers
send to the HTTP surface.
"""

from typing import Literal

from pydantic import BaseModel, Field

from src.models.context import TaskContext


class ChatMessage(BaseModel):
    """A single chat message."""

    role: Literal["system", "user", "assistant"] = "user"
    content: str


class ChatCompletionRequest(BaseModel):
    """Chat-completion request sent to one backend.

    Attributes:
        model: Backend identifier.
        messages: Conversation; orchestration prompts are a single user turn.
        temperature: Sampling temperature.
        max_tokens: Completion token cap.
        stream: Whether the backend should answer with SSE frames.
    """

    model: str
    messages: list[ChatMessage]
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, ge=1)
    stream: bool = False

    @classmethod
    def from_prompt(
        cls,
        model: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        stream: bool = False,
    ) -> "ChatCompletionRequest":
        """Build a single-user-turn request."""
        return cls(
            model=model,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=temperature,
            max_tokens=max_tokens,
            stream=stream,
        )

    def to_payload(self) -> dict[str, object]:
        """Serialize to the JSON body expected by the transport."""
        return self.model_dump()


class OrchestrateRequest(BaseModel):
    """Body of POST /v1/orchestrate and /v1/orchestrate/stream."""

    prompt: str = Field(min_length=1)
    context: TaskContext | None = None
