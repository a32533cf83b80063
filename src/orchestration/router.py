"""Task router - classify a request and propose candidate backends.

One meta-prompt goes to the routing backend asking for a compact JSON
description of the task. The reply is parsed strictly; any failure yields
the default decision built from the caller's context. route() never raises.

Flow:
    prompt (+ goal) → router backend → RoutingReply | None → RoutingDecision
"""

from src.core.config import BackendRoster
from src.core.logging import get_logger
from src.models.context import TaskContext, TaskType
from src.models.requests import ChatCompletionRequest
from src.models.responses import RoutingDecision, RoutingReply
from src.orchestration.json_extract import parse_model_reply
from src.providers.base import ChatTransport, complete_within


logger = get_logger(__name__)

ROUTER_TEMPERATURE = 0.3
DEFAULT_REQUIREMENTS = ("clarity",)

ROUTER_PROMPT_TEMPLATE = """Analyze this request and determine what type of task it is:
- enhance: improving/expanding existing content
- summarize: condensing information
- generate-steps: creating actionable steps for a goal
- elaborate: adding details to a goal
- refine: conversational refinement

Also identify key requirements (conciseness, creativity, structure, etc.).

Request: "{prompt}"
{goal_line}
Return a JSON with: {{"taskType": string, "requirements": string[], "suggestedPrimary": string, "suggestedSecondary": string}}"""


class TaskRouter:
    """Produce a RoutingDecision for each request.

    Args:
        transport: Chat transport used for the routing call.
        roster: Configured backends. Suggestions naming a backend outside
            the roster are replaced with the roster defaults.
        max_tokens: Completion cap for the routing call.
        timeout_s: Total deadline for the call.
    """

    def __init__(
        self,
        transport: ChatTransport,
        roster: BackendRoster,
        max_tokens: int = 500,
        timeout_s: float = 10.0,
    ) -> None:
        self._transport = transport
        self._roster = roster
        self._max_tokens = max_tokens
        self._timeout_s = timeout_s

    def default_decision(self, context: TaskContext | None = None) -> RoutingDecision:
        """Decision used whenever the router reply is unusable."""
        task_type = context.effective_task_type if context else TaskType.ENHANCE
        return RoutingDecision(
            task_type=task_type,
            requirements=DEFAULT_REQUIREMENTS,
            suggested_primary=self._roster.primary,
            suggested_secondary=self._roster.fast,
            from_router=False,
        )

    def build_prompt(self, prompt: str, context: TaskContext | None = None) -> str:
        goal_line = f"Goal context: {context.goal}\n" if context and context.goal else ""
        return ROUTER_PROMPT_TEMPLATE.format(prompt=prompt, goal_line=goal_line)

    async def route(
        self, prompt: str, context: TaskContext | None = None
    ) -> RoutingDecision:
        """Classify ``prompt``. Never raises."""
        request = ChatCompletionRequest.from_prompt(
            self._roster.router,
            self.build_prompt(prompt, context),
            temperature=ROUTER_TEMPERATURE,
            max_tokens=self._max_tokens,
        )

        try:
            raw = await complete_within(
                self._transport, request, self._timeout_s
            )
        except Exception as e:
            logger.warning(
                "Routing call failed, using default decision",
                model=self._roster.router,
                error=str(e),
            )
            return self.default_decision(context)

        reply = parse_model_reply(raw, RoutingReply)
        if reply is None:
            logger.info("Routing reply unparseable, using default decision")
            return self.default_decision(context)

        return self._decision_from_reply(reply, context)

    def _decision_from_reply(
        self, reply: RoutingReply, context: TaskContext | None
    ) -> RoutingDecision:
        default = self.default_decision(context)
        known = self._roster.identifiers()

        task_type = TaskType.parse(reply.task_type) or default.task_type
        primary = reply.suggested_primary
        secondary = reply.suggested_secondary
        if primary not in known:
            primary = default.suggested_primary
        if secondary not in known:
            secondary = default.suggested_secondary

        decision = RoutingDecision(
            task_type=task_type,
            requirements=tuple(reply.requirements) or DEFAULT_REQUIREMENTS,
            suggested_primary=primary,
            suggested_secondary=secondary,
            from_router=True,
        )
        logger.debug(
            "Routing decision",
            task_type=decision.task_type.value,
            primary=decision.suggested_primary,
            secondary=decision.suggested_secondary,
        )
        return decision
