"""Orchestrator - main entry point for orchestrated responses.

Non-streaming flow:
    Request → Router → Fan-out (parallel) → Evaluator → [Synthesizer] → Response
    any unrecoverable error ──────────────────────────→ Fallback → Response | error

Streaming flow:
    Request → StreamingAdapter (one backend) → on_chunk(delta)...

The only error a non-streaming caller has to handle is
AllBackendsFailedError; every other failure degrades to a valid response.
"""

from __future__ import annotations

from src.core.config import Settings
from src.core.exceptions import AllBackendsFailedError, NoValidResponsesError
from src.core.logging import get_logger, request_scope
from src.models.context import TaskContext
from src.models.responses import OrchestratedResponse
from src.orchestration.evaluator import EvaluationResult, ResponseEvaluator
from src.orchestration.fallback import FallbackPolicy
from src.orchestration.fanout import FanOutExecutor
from src.orchestration.router import TaskRouter
from src.orchestration.state import OrchestrationRun, OrchestrationState
from src.orchestration.streaming import ChunkCallback, StreamingAdapter
from src.orchestration.synthesizer import SYNTHESIZED_SUFFIX, ResponseSynthesizer
from src.providers.base import ChatTransport


logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 75.0


class Orchestrator:
    """Fan a prompt out to several backends and return one answer.

    Components are injected so each can be configured or replaced on its
    own; from_settings() wires the standard set.

    Example:
        transport = HttpChatTransport.from_settings(settings)
        orchestrator = Orchestrator.from_settings(transport, settings)
        result = await orchestrator.get_best_response(
            "Summarize: The quick brown fox...",
            TaskContext(task_type=TaskType.SUMMARIZE),
        )
    """

    def __init__(
        self,
        router: TaskRouter,
        fanout: FanOutExecutor,
        evaluator: ResponseEvaluator,
        synthesizer: ResponseSynthesizer,
        streaming: StreamingAdapter,
        fallback: FallbackPolicy,
        default_confidence: float = DEFAULT_CONFIDENCE,
    ) -> None:
        self._router = router
        self._fanout = fanout
        self._evaluator = evaluator
        self._synthesizer = synthesizer
        self._streaming = streaming
        self._fallback = fallback
        self._default_confidence = default_confidence

    @classmethod
    def from_settings(
        cls, transport: ChatTransport, settings: Settings
    ) -> Orchestrator:
        """Wire every component from application settings."""
        roster = settings.backends
        max_tokens = settings.default_max_tokens
        timeout_s = settings.direct_timeout_s
        return cls(
            router=TaskRouter(
                transport, roster, max_tokens=max_tokens, timeout_s=timeout_s
            ),
            fanout=FanOutExecutor(
                transport,
                structured_model=roster.structured,
                timeout_s=timeout_s,
                max_tokens=max_tokens,
            ),
            evaluator=ResponseEvaluator(
                transport,
                judge_model=roster.judge,
                default_score=settings.judge_default_confidence,
                max_tokens=max_tokens,
                timeout_s=timeout_s,
            ),
            synthesizer=ResponseSynthesizer(
                transport,
                synthesis_model=roster.synthesizer,
                confidence_threshold=settings.synthesis_confidence_threshold,
                min_length=settings.min_synthesis_length,
                max_tokens=max_tokens,
                timeout_s=timeout_s,
            ),
            streaming=StreamingAdapter(
                transport,
                streaming_model=roster.streaming,
                max_tokens=max_tokens,
            ),
            fallback=FallbackPolicy(
                transport,
                baseline_model=roster.fallback,
                confidence=settings.fallback_confidence,
                temperature=settings.default_temperature,
                max_tokens=max_tokens,
                timeout_s=timeout_s,
            ),
            default_confidence=settings.default_confidence,
        )

    # -------------------------------------------------------------------------
    # Non-streaming
    # -------------------------------------------------------------------------

    async def get_best_response(
        self, prompt: str, context: TaskContext | None = None
    ) -> OrchestratedResponse:
        """Route, fan out, rank and optionally synthesize an answer.

        Raises:
            AllBackendsFailedError: Fan-out and fallback both failed.
        """
        with request_scope():
            return await self._orchestrate(prompt, context)

    async def _orchestrate(
        self, prompt: str, context: TaskContext | None
    ) -> OrchestratedResponse:
        run = OrchestrationRun()
        logger.info("Orchestration started")

        try:
            decision = await self._router.route(prompt, context)
            run.advance(OrchestrationState.FANOUT)

            responses = await self._fanout.execute(decision, prompt, context)
            run.advance(OrchestrationState.EVALUATING)

            evaluation = await self._evaluator.evaluate(responses, prompt)
            return await self._assemble(run, evaluation, prompt)
        except NoValidResponsesError as e:
            logger.warning(
                "No candidates survived fan-out",
                attempted_models=e.attempted_models,
            )
        except Exception as e:
            logger.exception(
                "Orchestration failed", state=run.state.value, error=str(e)
            )

        return await self._run_fallback(run, prompt)

    async def _assemble(
        self,
        run: OrchestrationRun,
        evaluation: EvaluationResult,
        prompt: str,
    ) -> OrchestratedResponse:
        best = evaluation.best
        final_content = best.content
        reasoning = f"Primary: {best.model}"

        if self._synthesizer.should_synthesize(best, evaluation.responses):
            run.advance(OrchestrationState.SYNTHESIZING)
            synthesized = await self._synthesizer.synthesize(
                evaluation.responses, prompt
            )
            if synthesized is not None:
                final_content = synthesized
                reasoning += SYNTHESIZED_SUFFIX

        confidence = (
            best.confidence if best.confidence is not None else self._default_confidence
        )
        result = OrchestratedResponse(
            final_content=final_content,
            used_models=[r.model for r in evaluation.responses],
            reasoning=reasoning,
            confidence=confidence,
            alternatives=evaluation.responses,
        )
        run.advance(OrchestrationState.DONE)

        logger.info(
            "Orchestration complete",
            used_models=result.used_models,
            confidence=result.confidence,
            synthesized=reasoning.endswith(SYNTHESIZED_SUFFIX),
            elapsed_ms=round(run.elapsed_ms, 1),
        )
        return result

    async def _run_fallback(
        self, run: OrchestrationRun, prompt: str
    ) -> OrchestratedResponse:
        run.advance(OrchestrationState.FALLBACK)
        try:
            result = await self._fallback.run(prompt)
        except AllBackendsFailedError:
            run.advance(OrchestrationState.FAILED)
            raise

        run.advance(OrchestrationState.DONE)
        logger.info(
            "Fallback answered",
            model=self._fallback.baseline_model,
            elapsed_ms=round(run.elapsed_ms, 1),
        )
        return result

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    async def stream_best_response(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        context: TaskContext | None = None,
    ) -> int:
        """Stream one backend's answer into ``on_chunk``.

        Returns:
            Number of deltas delivered.

        Raises:
            BackendCallError: The stream could not be opened.
            StreamInterruptedError: The stream failed part-way.
        """
        with request_scope():
            logger.info("Streaming started")
            return await self._streaming.stream(prompt, on_chunk, context)
