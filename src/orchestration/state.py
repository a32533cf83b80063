"""Per-request orchestration state machine.

    ROUTING → FANOUT → EVALUATING → [SYNTHESIZING] → DONE
        ╲        │          │             │
         ╲───────┴──────────┴─────────────┴──→ FALLBACK → DONE | FAILED

No state is revisited. An OrchestrationRun lives for one top-level request
only, so concurrent requests never share state.
"""

import time
from enum import Enum

from src.core.exceptions import InvalidStateTransitionError
from src.core.logging import get_logger


logger = get_logger(__name__)


class OrchestrationState(Enum):
    """Stages of one orchestrated request."""

    ROUTING = "routing"
    FANOUT = "fanout"
    EVALUATING = "evaluating"
    SYNTHESIZING = "synthesizing"
    FALLBACK = "fallback"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[OrchestrationState, frozenset[OrchestrationState]] = {
    OrchestrationState.ROUTING: frozenset(
        {OrchestrationState.FANOUT, OrchestrationState.FALLBACK}
    ),
    OrchestrationState.FANOUT: frozenset(
        {OrchestrationState.EVALUATING, OrchestrationState.FALLBACK}
    ),
    OrchestrationState.EVALUATING: frozenset(
        {
            OrchestrationState.SYNTHESIZING,
            OrchestrationState.DONE,
            OrchestrationState.FALLBACK,
        }
    ),
    OrchestrationState.SYNTHESIZING: frozenset(
        {OrchestrationState.DONE, OrchestrationState.FALLBACK}
    ),
    OrchestrationState.FALLBACK: frozenset(
        {OrchestrationState.DONE, OrchestrationState.FAILED}
    ),
    OrchestrationState.DONE: frozenset(),
    OrchestrationState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({OrchestrationState.DONE, OrchestrationState.FAILED})


class OrchestrationRun:
    """Tracks the state path of a single request.

    Attributes:
        state: Current state.
        history: States visited so far, in order.
    """

    def __init__(self) -> None:
        self.state = OrchestrationState.ROUTING
        self.history: list[OrchestrationState] = [OrchestrationState.ROUTING]
        self._started = time.perf_counter()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def used_fallback(self) -> bool:
        return OrchestrationState.FALLBACK in self.history

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    def can_advance(self, target: OrchestrationState) -> bool:
        return target in _TRANSITIONS[self.state] and target not in self.history

    def advance(self, target: OrchestrationState) -> None:
        """Move to ``target``.

        Raises:
            InvalidStateTransitionError: The transition is not allowed or
                ``target`` was already visited.
        """
        if not self.can_advance(target):
            raise InvalidStateTransitionError(
                f"Cannot move from {self.state.value} to {target.value}",
                current_state=self.state.value,
                target_state=target.value,
            )
        logger.debug(
            "State transition",
            from_state=self.state.value,
            to_state=target.value,
            elapsed_ms=round(self.elapsed_ms, 1),
        )
        self.state = target
        self.history.append(target)
