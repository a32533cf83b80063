"""Fan-out executor - fire all candidate calls, await all, keep survivors.

Flow:
    RoutingDecision → [primary, fast, (structured)] (parallel) → survivors

Every call runs in its own wrapper that owns its timeout scope and swallows
its own failure, so asyncio.gather never sees an exception and one slow or
broken backend cannot cancel its siblings. The executor waits for every call
to settle, not for the first to finish.
"""

import asyncio
import time
from dataclasses import dataclass

from src.core.exceptions import BackendTimeoutError, NoValidResponsesError
from src.core.logging import get_logger
from src.models.context import TaskContext
from src.models.requests import ChatCompletionRequest
from src.models.responses import ModelResponse, RoutingDecision
from src.providers.base import ChatTransport, complete_within


logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

PRIMARY_TEMPERATURE = 0.7
FAST_TEMPERATURE = 0.5
STRUCTURED_TEMPERATURE = 0.4

PRIMARY_PROMPT_TEMPLATE = """You are a creative assistant helping with {task_type}.
{goal_line}
Request: {prompt}

Provide a detailed, helpful response that is practical and actionable."""

FAST_PROMPT_TEMPLATE = """Quick response to: {prompt}

Be concise and direct."""

STRUCTURED_PROMPT_TEMPLATE = (
    'Given this request: "{prompt}", provide a structured outline of how to '
    "approach it. Focus on logic and organization."
)


@dataclass(frozen=True)
class CandidateCall:
    """One planned backend call: which model, which prompt variant."""

    model: str
    prompt: str
    temperature: float
    role: str


class FanOutExecutor:
    """Run the candidate calls for one request concurrently.

    Args:
        transport: Chat transport.
        structured_model: Extra backend added for deep task types.
        timeout_s: Per-call timeout; each call has its own scope.
        max_tokens: Completion cap per call.
    """

    def __init__(
        self,
        transport: ChatTransport,
        structured_model: str,
        timeout_s: float = 10.0,
        max_tokens: int = 500,
    ) -> None:
        self._transport = transport
        self._structured_model = structured_model
        self._timeout_s = timeout_s
        self._max_tokens = max_tokens

    def plan(
        self,
        decision: RoutingDecision,
        prompt: str,
        context: TaskContext | None = None,
    ) -> list[CandidateCall]:
        """Build one task-tailored prompt per selected backend."""
        goal_line = f"Goal: {context.goal}\n" if context and context.goal else ""
        calls = [
            CandidateCall(
                model=decision.suggested_primary,
                prompt=PRIMARY_PROMPT_TEMPLATE.format(
                    task_type=decision.task_type.value,
                    goal_line=goal_line,
                    prompt=prompt,
                ),
                temperature=PRIMARY_TEMPERATURE,
                role="primary",
            ),
            CandidateCall(
                model=decision.suggested_secondary,
                prompt=FAST_PROMPT_TEMPLATE.format(prompt=prompt),
                temperature=FAST_TEMPERATURE,
                role="fast",
            ),
        ]
        if decision.task_type.is_deep:
            calls.append(
                CandidateCall(
                    model=self._structured_model,
                    prompt=STRUCTURED_PROMPT_TEMPLATE.format(prompt=prompt),
                    temperature=STRUCTURED_TEMPERATURE,
                    role="structured",
                )
            )
        return calls

    async def execute(
        self,
        decision: RoutingDecision,
        prompt: str,
        context: TaskContext | None = None,
    ) -> list[ModelResponse]:
        """Run all planned calls and return the survivors in submission order.

        Raises:
            NoValidResponsesError: If no call returned non-empty content.
        """
        calls = self.plan(decision, prompt, context)
        settled = await asyncio.gather(*(self._run(call) for call in calls))
        survivors = [r for r in settled if r is not None]

        logger.info(
            "Fan-out settled",
            attempted=len(calls),
            succeeded=len(survivors),
            task_type=decision.task_type.value,
        )

        if not survivors:
            raise NoValidResponsesError(attempted_models=[c.model for c in calls])
        return survivors

    async def _run(self, call: CandidateCall) -> ModelResponse | None:
        request = ChatCompletionRequest.from_prompt(
            call.model,
            call.prompt,
            temperature=call.temperature,
            max_tokens=self._max_tokens,
        )
        start = time.perf_counter()

        try:
            content = await complete_within(self._transport, request, self._timeout_s)
        except BackendTimeoutError:
            logger.warning(
                "Candidate timed out", model=call.model, role=call.role,
                timeout_s=self._timeout_s,
            )
            return None
        except Exception as e:
            logger.warning(
                "Candidate failed", model=call.model, role=call.role,
                error=str(e), error_type=type(e).__name__,
            )
            return None

        if not content or not content.strip():
            logger.info("Candidate returned empty content", model=call.model)
            return None

        return ModelResponse(
            content=content,
            model=call.model,
            latency_ms=(time.perf_counter() - start) * 1000,
        )
