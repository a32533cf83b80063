"""Unit tests for Orchestrator end-to-end flows.

Tests for:
- Non-streaming pipeline: route → fan-out → evaluate → [synthesize]
- Degradation to the fallback backend
- Streaming delegation
- Independence of concurrent requests
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from src.core.config import BackendRoster, Settings
from src.core.exceptions import (
    AllBackendsFailedError,
    BackendCallError,
    StreamInterruptedError,
)
from src.core.logging import get_request_id
from src.models.context import TaskContext, TaskType
from src.orchestration.evaluator import EvaluationResult
from src.orchestration.fallback import FALLBACK_REASONING
from src.orchestration.orchestrator import Orchestrator
from src.orchestration.synthesizer import SYNTHESIZED_SUFFIX
from tests.unit.providers.mock_transport import ScriptedTransport


SUMMARY_PROMPT = "Summarize: The quick brown fox jumps over the lazy dog."
PRIMARY_ANSWER = "A quick fox leaps over a sleeping dog, showing speed and agility."
FAST_ANSWER = "Fox jumps over dog."
MERGED_ANSWER = (
    "A nimble fox leaps over a lazy dog: a short picture of speed meeting rest."
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def orchestrator(transport: ScriptedTransport, settings: Settings) -> Orchestrator:
    return Orchestrator.from_settings(transport, settings)


def route_as(transport: ScriptedTransport, roster: BackendRoster, task_type: str) -> None:
    transport.reply(
        roster.router,
        json.dumps(
            {
                "taskType": task_type,
                "requirements": ["clarity"],
                "suggestedPrimary": roster.primary,
                "suggestedSecondary": roster.fast,
            }
        ),
    )


def verdict(index: int, score: float | None = None) -> str:
    body: dict[str, object] = {"bestResponseIndex": index, "reasoning": "best fit"}
    if score is not None:
        body["confidenceScore"] = score
    return json.dumps(body)


# =============================================================================
# Non-streaming
# =============================================================================


class TestGetBestResponse:
    """Full pipeline without degradation."""

    async def test_confident_judge_no_synthesis(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A judge score of 90 is returned as-is and nothing is merged."""
        route_as(transport, roster, "summarize")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 90))

        result = await orchestrator.get_best_response(
            SUMMARY_PROMPT, TaskContext(taskType=TaskType.SUMMARIZE)
        )

        assert result.final_content == PRIMARY_ANSWER
        assert result.confidence == 90
        assert result.used_models == [roster.primary, roster.fast]
        assert result.reasoning == f"Primary: {roster.primary}"
        assert len(result.alternatives) == 2
        assert transport.calls_to(roster.synthesizer) == []

    async def test_judge_picks_second(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """The final content comes from the candidate the judge chose."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(1, 88))

        result = await orchestrator.get_best_response("Improve this")

        assert result.final_content == FAST_ANSWER
        assert result.reasoning == f"Primary: {roster.fast}"
        assert result.alternatives[1].confidence == 88
        assert result.alternatives[0].confidence is None

    async def test_single_survivor_of_deep_task(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Two of three calls fail; the survivor is returned at confidence 75."""
        route_as(transport, roster, "generate-steps")
        transport.reply(roster.primary, BackendCallError("500", model_id=roster.primary))
        transport.reply(roster.fast, RuntimeError("connection reset"))
        transport.reply(roster.structured, "Step 1: Research. Step 2: Plan.")

        result = await orchestrator.get_best_response(
            "How do I start a podcast?", TaskContext(taskType=TaskType.GENERATE_STEPS)
        )

        assert result.used_models == [roster.structured]
        assert result.final_content == "Step 1: Research. Step 2: Plan."
        assert result.confidence == 75
        assert transport.calls_to(roster.judge) == []
        assert transport.calls_to(roster.synthesizer) == []

    async def test_unusable_verdict_defaults_to_first(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """An unparseable verdict keeps the first candidate at confidence 75."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, "Response 2 is clearly better.")

        result = await orchestrator.get_best_response("p")

        assert result.final_content == PRIMARY_ANSWER
        assert result.confidence == 75
        assert transport.calls_to(roster.synthesizer) == []

    async def test_router_failure_uses_default_route(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A failing router does not stop the pipeline."""
        transport.reply(roster.router, RuntimeError("router down"))
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 95))

        result = await orchestrator.get_best_response("p")

        assert result.confidence == 95
        assert result.used_models == [roster.primary, roster.fast]


class TestSynthesis:
    """Low-confidence merging."""

    async def test_low_confidence_merged(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Below 80, a long merge replaces the content and is flagged."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(1, 60))
        transport.reply(roster.synthesizer, MERGED_ANSWER)

        result = await orchestrator.get_best_response("p")

        assert result.final_content == MERGED_ANSWER
        assert result.reasoning == f"Primary: {roster.fast}{SYNTHESIZED_SUFFIX}"
        assert result.confidence == 60
        assert result.used_models == [roster.primary, roster.fast]

    async def test_short_merge_discarded(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A merge of 50 characters or fewer keeps the best candidate."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 40))
        transport.reply(roster.synthesizer, "Too short.")

        result = await orchestrator.get_best_response("p")

        assert result.final_content == PRIMARY_ANSWER
        assert result.reasoning == f"Primary: {roster.primary}"
        assert result.confidence == 40

    async def test_failed_merge_keeps_best(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A failing merge call is not an orchestration failure."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 10))
        transport.reply(roster.synthesizer, BackendCallError("502"))

        result = await orchestrator.get_best_response("p")

        assert result.final_content == PRIMARY_ANSWER
        assert transport.calls_to(roster.fallback) == []


class TestFallback:
    """Degradation to the baseline backend."""

    async def test_all_candidates_fail(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """No survivors sends the raw prompt to the fallback backend."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, RuntimeError("a"))
        transport.reply(roster.fast, "")
        transport.reply(roster.fallback, "Baseline answer")

        result = await orchestrator.get_best_response("Raw prompt")

        assert result.final_content == "Baseline answer"
        assert result.used_models == [roster.fallback]
        assert result.reasoning == FALLBACK_REASONING
        assert result.confidence == 50
        (call,) = transport.calls_to(roster.fallback)
        assert call.messages[0].content == "Raw prompt"

    async def test_unexpected_error_falls_back(
        self,
        orchestrator: Orchestrator,
        transport: ScriptedTransport,
        roster: BackendRoster,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """An exception escaping a component degrades to the fallback."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.fallback, "Baseline answer")
        monkeypatch.setattr(
            orchestrator._evaluator,
            "evaluate",
            AsyncMock(side_effect=RuntimeError("bug")),
        )

        result = await orchestrator.get_best_response("p")
        assert result.reasoning == FALLBACK_REASONING

    async def test_fallback_failure_is_terminal(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """If the fallback fails too, AllBackendsFailedError reaches the caller."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, RuntimeError("a"))
        transport.reply(roster.fast, RuntimeError("b"))
        transport.reply(roster.fallback, BackendCallError("503"))

        with pytest.raises(AllBackendsFailedError):
            await orchestrator.get_best_response("p")
        assert len(transport.calls_to(roster.fallback)) == 1


class TestConcurrency:
    """Independent top-level requests."""

    async def test_concurrent_requests(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Two requests in flight at once both complete normally."""
        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER).delay(roster.primary, 0.02)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 90))

        first, second = await asyncio.gather(
            orchestrator.get_best_response("one"),
            orchestrator.get_best_response("two"),
        )

        assert first.final_content == second.final_content == PRIMARY_ANSWER
        assert len(transport.calls_to(roster.judge)) == 2


class TestDeadlines:
    """Every direct call is bounded by the direct timeout."""

    async def test_slow_judge_does_not_hold_request(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A judge past the deadline is abandoned; the first candidate is returned."""
        transport.reply(roster.router, "not json")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(1, 90)).delay(roster.judge, 1.5)

        loop = asyncio.get_running_loop()
        start = loop.time()
        result = await orchestrator.get_best_response(SUMMARY_PROMPT)

        assert loop.time() - start < 0.6
        assert result.final_content == PRIMARY_ANSWER
        assert result.confidence == 75

    async def test_slow_router_does_not_hold_request(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """A router past the deadline falls back to the default route in time."""
        route_as(transport, roster, "summarize")
        transport.delay(roster.router, 1.5)
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        transport.reply(roster.judge, verdict(0, 90))

        loop = asyncio.get_running_loop()
        start = loop.time()
        result = await orchestrator.get_best_response(SUMMARY_PROMPT)

        assert loop.time() - start < 0.6
        assert result.confidence == 90


class TestRequestScope:
    """Request ID binding around each entry point."""

    async def test_request_id_released_after_response(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """No request ID stays bound once get_best_response() returns."""
        seen: list[str | None] = []

        async def judge(responses: list, prompt: str) -> EvaluationResult:
            seen.append(get_request_id())
            return EvaluationResult(responses=responses, best_index=0)

        route_as(transport, roster, "enhance")
        transport.reply(roster.primary, PRIMARY_ANSWER)
        transport.reply(roster.fast, FAST_ANSWER)
        orchestrator._evaluator.evaluate = AsyncMock(  # type: ignore[method-assign]
            side_effect=judge
        )

        await orchestrator.get_best_response("p")

        assert seen[0] is not None
        assert seen[0].startswith("orch-")
        assert get_request_id() is None

    async def test_request_id_released_after_failure(
        self, orchestrator: Orchestrator
    ) -> None:
        """A terminal failure also releases the request ID."""
        with pytest.raises(AllBackendsFailedError):
            await orchestrator.get_best_response("p")
        assert get_request_id() is None

    async def test_request_id_released_after_stream(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Streaming binds an ID per call and releases it afterwards."""
        seen: list[str | None] = []
        transport.stream_reply(roster.streaming, "a", "b")

        await orchestrator.stream_best_response(
            "p", lambda _: seen.append(get_request_id())
        )

        assert len(seen) == 2
        assert seen[0] is not None
        assert seen[0] == seen[1]
        assert get_request_id() is None


# =============================================================================
# Streaming
# =============================================================================


class TestStreamBestResponse:
    """Streaming delegation."""

    async def test_streams_to_callback(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Deltas reach the callback; no fan-out or judge call is made."""
        transport.stream_reply(roster.streaming, "Re", "fined")
        received: list[str] = []

        count = await orchestrator.stream_best_response(
            "Refine this", received.append, TaskContext(taskType=TaskType.REFINE)
        )

        assert received == ["Re", "fined"]
        assert count == 2
        assert [c.model for c in transport.calls] == [roster.streaming]

    async def test_stream_error_propagates(
        self, orchestrator: Orchestrator, transport: ScriptedTransport, roster: BackendRoster
    ) -> None:
        """Streaming failures are not routed to the fallback."""
        transport.stream_reply(roster.streaming, "a", StreamInterruptedError("cut"))
        received: list[str] = []

        with pytest.raises(StreamInterruptedError):
            await orchestrator.stream_best_response("p", received.append)

        assert received == ["a"]
        assert transport.calls_to(roster.fallback) == []
