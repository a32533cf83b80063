"""Response evaluator - a judge backend picks the best candidate.

The judge sees every candidate and answers with
``{"bestResponseIndex", "reasoning", "confidenceScore"}``. A valid verdict
attaches its score to the chosen candidate only. Anything else (call
failure, unparseable reply, index out of range) skips evaluation: the first
candidate in submission order becomes the unscored default. evaluate()
never raises.
"""

from dataclasses import dataclass

from src.core.logging import get_logger
from src.models.requests import ChatCompletionRequest
from src.models.responses import EvaluationVerdict, ModelResponse
from src.orchestration.json_extract import parse_model_reply
from src.providers.base import ChatTransport, complete_within


logger = get_logger(__name__)

JUDGE_TEMPERATURE = 0.3

EVALUATION_PROMPT_TEMPLATE = """Original request: "{prompt}"

I have received multiple responses from different AI models. Please analyze them and rank which one is best:
{candidates}
Consider:
1. Relevance to the original request
2. Clarity and coherence
3. Actionability/practicality
4. Completeness

Return a JSON object with:
- bestResponseIndex: the index (0-based) of the best response
- reasoning: brief explanation why
- confidenceScore: 0-100 score

Format: {{"bestResponseIndex": number, "reasoning": string, "confidenceScore": number}}"""


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one evaluation.

    Attributes:
        responses: Candidates in submission order; only ``best`` may be scored.
        best_index: Index of the selected candidate.
        rationale: Judge's explanation, None when evaluation was skipped.
    """

    responses: list[ModelResponse]
    best_index: int
    rationale: str | None = None

    @property
    def best(self) -> ModelResponse:
        return self.responses[self.best_index]

    @property
    def scored(self) -> bool:
        return self.best.confidence is not None


class ResponseEvaluator:
    """Rank candidates with a judge backend.

    Args:
        transport: Chat transport.
        judge_model: Backend used as judge.
        default_score: Score attached when the verdict omits one.
        max_tokens: Completion cap for the judge call.
        timeout_s: Total deadline for the call.
    """

    def __init__(
        self,
        transport: ChatTransport,
        judge_model: str,
        default_score: float = 85.0,
        max_tokens: int = 500,
        timeout_s: float = 10.0,
    ) -> None:
        self._transport = transport
        self._judge_model = judge_model
        self._default_score = default_score
        self._max_tokens = max_tokens
        self._timeout_s = timeout_s

    def build_prompt(self, responses: list[ModelResponse], prompt: str) -> str:
        candidates = "".join(
            f"\nRESPONSE {i + 1} (from {r.model}):\n{r.content}\n---\n"
            for i, r in enumerate(responses)
        )
        return EVALUATION_PROMPT_TEMPLATE.format(prompt=prompt, candidates=candidates)

    async def evaluate(
        self, responses: list[ModelResponse], prompt: str
    ) -> EvaluationResult:
        """Select the best candidate. Never raises.

        A single candidate is selected without calling the judge.
        """
        default = EvaluationResult(responses=list(responses), best_index=0)
        if len(responses) < 2:
            return default

        request = ChatCompletionRequest.from_prompt(
            self._judge_model,
            self.build_prompt(responses, prompt),
            temperature=JUDGE_TEMPERATURE,
            max_tokens=self._max_tokens,
        )
        try:
            raw = await complete_within(
                self._transport, request, self._timeout_s
            )
        except Exception as e:
            logger.warning("Evaluation failed", model=self._judge_model, error=str(e))
            return default

        verdict = parse_model_reply(raw, EvaluationVerdict)
        if verdict is None or verdict.best_response_index >= len(responses):
            logger.info("Evaluation skipped, judge reply unusable")
            return default

        index = verdict.best_response_index
        score = (
            verdict.confidence_score
            if verdict.confidence_score is not None
            else self._default_score
        )
        scored = list(responses)
        scored[index] = scored[index].with_confidence(score)

        logger.info(
            "Evaluation complete",
            best_index=index,
            best_model=scored[index].model,
            confidence=scored[index].confidence,
        )
        return EvaluationResult(
            responses=scored,
            best_index=index,
            rationale=verdict.reasoning or None,
        )
