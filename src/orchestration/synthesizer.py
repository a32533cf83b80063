"""Response synthesizer - merge candidates when the judge is unsure.

Runs only when the best candidate was scored below the confidence threshold
and there are at least two candidates. A synthesized answer replaces the
best candidate only when it is longer than the minimum sanity length; every
other outcome (call failure, short or empty output) keeps the best
candidate unchanged.
"""

from string import ascii_uppercase

from src.core.logging import get_logger
from src.models.requests import ChatCompletionRequest
from src.models.responses import ModelResponse
from src.providers.base import ChatTransport, complete_within


logger = get_logger(__name__)

SYNTHESIS_TEMPERATURE = 0.5
SYNTHESIZED_SUFFIX = " (synthesized from multiple models)"

SYNTHESIS_PROMPT_TEMPLATE = """I have multiple responses to the request: "{prompt}"
{sections}
Create a final response that combines the best elements from each, maintaining coherence and addressing the original request."""


class ResponseSynthesizer:
    """Merge several candidates into one answer via a further model call.

    Args:
        transport: Chat transport.
        synthesis_model: Backend used for merging.
        confidence_threshold: Synthesize only below this confidence.
        min_length: Result must be longer than this many characters.
        max_tokens: Completion cap for the synthesis call.
        timeout_s: Total deadline for the call.
    """

    def __init__(
        self,
        transport: ChatTransport,
        synthesis_model: str,
        confidence_threshold: float = 80.0,
        min_length: int = 50,
        max_tokens: int = 500,
        timeout_s: float = 10.0,
    ) -> None:
        self._transport = transport
        self._synthesis_model = synthesis_model
        self._confidence_threshold = confidence_threshold
        self._min_length = min_length
        self._max_tokens = max_tokens
        self._timeout_s = timeout_s

    @property
    def synthesis_model(self) -> str:
        return self._synthesis_model

    def should_synthesize(
        self, best: ModelResponse, responses: list[ModelResponse]
    ) -> bool:
        """Low (but present) confidence and at least two candidates."""
        return (
            len(responses) >= 2
            and best.confidence is not None
            and best.confidence < self._confidence_threshold
        )

    def build_prompt(self, responses: list[ModelResponse], prompt: str) -> str:
        sections = "".join(
            f"\nResponse {label} ({r.model}):\n{r.content}\n"
            for label, r in zip(ascii_uppercase, responses)
        )
        return SYNTHESIS_PROMPT_TEMPLATE.format(prompt=prompt, sections=sections)

    async def synthesize(
        self, responses: list[ModelResponse], prompt: str
    ) -> str | None:
        """Return merged text, or None to keep the best candidate.

        Never raises.
        """
        request = ChatCompletionRequest.from_prompt(
            self._synthesis_model,
            self.build_prompt(responses, prompt),
            temperature=SYNTHESIS_TEMPERATURE,
            max_tokens=self._max_tokens,
        )
        try:
            synthesized = await complete_within(
                self._transport, request, self._timeout_s
            )
        except Exception as e:
            logger.warning(
                "Synthesis failed, keeping best candidate",
                model=self._synthesis_model,
                error=str(e),
            )
            return None

        if len(synthesized.strip()) <= self._min_length:
            logger.info(
                "Synthesis too short, keeping best candidate",
                length=len(synthesized),
                min_length=self._min_length,
            )
            return None
        return synthesized
