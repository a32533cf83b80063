"""Fallback policy - one direct call to the baseline backend.

Used when fan-out produced no candidates or an unexpected error escaped the
pipeline. The raw, unshaped prompt goes to the baseline backend exactly
once; if that fails too, AllBackendsFailedError is the terminal outcome.
"""

import time

from src.core.exceptions import AllBackendsFailedError
from src.core.logging import get_logger
from src.models.requests import ChatCompletionRequest
from src.models.responses import ModelResponse, OrchestratedResponse
from src.providers.base import ChatTransport, complete_within


logger = get_logger(__name__)

FALLBACK_REASONING = "Fallback to single model"


class FallbackPolicy:
    """Single-shot degradation path.

    Args:
        transport: Chat transport.
        baseline_model: Backend called with the raw prompt.
        confidence: Confidence reported for a fallback answer.
        temperature: Sampling temperature.
        max_tokens: Completion cap.
        timeout_s: Total deadline for the call.
    """

    def __init__(
        self,
        transport: ChatTransport,
        baseline_model: str,
        confidence: float = 50.0,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_s: float = 10.0,
    ) -> None:
        self._transport = transport
        self._baseline_model = baseline_model
        self._confidence = confidence
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout_s = timeout_s

    @property
    def baseline_model(self) -> str:
        return self._baseline_model

    async def run(self, prompt: str) -> OrchestratedResponse:
        """Answer ``prompt`` with the baseline backend.

        Raises:
            AllBackendsFailedError: The baseline call failed or returned
                nothing.
        """
        request = ChatCompletionRequest.from_prompt(
            self._baseline_model,
            prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        start = time.perf_counter()

        try:
            content = await complete_within(
                self._transport, request, self._timeout_s
            )
        except Exception as e:
            logger.error(
                "Fallback failed", model=self._baseline_model, error=str(e)
            )
            raise AllBackendsFailedError(model_id=self._baseline_model) from e

        if not content or not content.strip():
            logger.error("Fallback returned empty content", model=self._baseline_model)
            raise AllBackendsFailedError(model_id=self._baseline_model)

        response = ModelResponse(
            content=content,
            model=self._baseline_model,
            latency_ms=(time.perf_counter() - start) * 1000,
        )
        return OrchestratedResponse(
            final_content=content,
            used_models=[self._baseline_model],
            reasoning=FALLBACK_REASONING,
            confidence=self._confidence,
            alternatives=[response],
        )
