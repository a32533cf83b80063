"""Response models for response-orchestrator.

ModelResponse is one completed backend call. OrchestratedResponse is the
single answer returned per top-level request, with provenance. The reply
schemas (RoutingReply, EvaluationVerdict) describe the JSON the router and
judge backends are asked to produce; they are parsed strictly and never
trusted beyond validation.
"""

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from src.models.context import TaskType


# =============================================================================
# Candidate & Result
# =============================================================================


class ModelResponse(BaseModel):
    """One completed backend call. Immutable once created.

    Attributes:
        content: Non-empty text returned by the backend.
        model: Backend identifier.
        confidence: Judge score in [0, 100]; None when unscored.
        latency_ms: Wall-clock duration of the call.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    content: str
    model: str
    confidence: float | None = Field(default=None, ge=0, le=100)
    latency_ms: float | None = Field(default=None, ge=0)

    def with_confidence(self, confidence: float) -> "ModelResponse":
        """Return a copy carrying ``confidence``, clamped to [0, 100]."""
        return self.model_copy(
            update={"confidence": max(0.0, min(100.0, float(confidence)))}
        )


class OrchestratedResponse(BaseModel):
    """Final answer for one top-level request.

    Serialized with camelCase keys (finalContent, usedModels) for callers.

    Attributes:
        final_content: The answer text; never empty.
        used_models: Backends whose candidates are in ``alternatives``, same order.
        reasoning: Short provenance string ("Primary: <model>" ...).
        confidence: Confidence in [0, 100].
        alternatives: Every surviving candidate.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    final_content: str = Field(min_length=1)
    used_models: list[str]
    reasoning: str
    confidence: float = Field(ge=0, le=100)
    alternatives: list[ModelResponse]

    @model_validator(mode="after")
    def check_provenance(self) -> "OrchestratedResponse":
        """used_models and alternatives must line up one-to-one."""
        if len(self.used_models) != len(self.alternatives):
            msg = (
                f"used_models ({len(self.used_models)}) and alternatives "
                f"({len(self.alternatives)}) must have the same length"
            )
            raise ValueError(msg)
        return self


# =============================================================================
# Routing
# =============================================================================


class RoutingDecision(BaseModel):
    """Per-request routing outcome. Transient.

    Attributes:
        task_type: Task category driving prompt shaping.
        requirements: Free-form requirement tags (conciseness, structure...).
        suggested_primary: Backend for the primary candidate.
        suggested_secondary: Backend for the alternative candidate.
        from_router: False when the default decision was used.
    """

    model_config = ConfigDict(frozen=True)

    task_type: TaskType
    requirements: tuple[str, ...] = ("clarity",)
    suggested_primary: str
    suggested_secondary: str
    from_router: bool = False


class RoutingReply(BaseModel):
    """JSON schema the routing backend is asked to return."""

    task_type: str = Field(validation_alias=AliasChoices("taskType", "task_type"))
    requirements: list[str] = Field(default_factory=list)
    suggested_primary: str | None = Field(
        default=None,
        validation_alias=AliasChoices("suggestedPrimary", "suggested_primary"),
    )
    suggested_secondary: str | None = Field(
        default=None,
        validation_alias=AliasChoices("suggestedSecondary", "suggested_secondary"),
    )

    @field_validator("requirements", mode="before")
    @classmethod
    def coerce_requirements(cls, v: object) -> object:
        """Accept a single tag as a one-element list."""
        if isinstance(v, str):
            return [v]
        return v


# =============================================================================
# Evaluation
# =============================================================================


class EvaluationVerdict(BaseModel):
    """JSON schema the judge backend is asked to return."""

    best_response_index: int = Field(
        validation_alias=AliasChoices("bestResponseIndex", "best_response_index"),
        ge=0,
    )
    reasoning: str = ""
    confidence_score: float | None = Field(
        default=None,
        validation_alias=AliasChoices("confidenceScore", "confidence_score"),
    )
