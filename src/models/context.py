"""Task context passed by reference through the orchestration pipeline.

TaskContext is frozen: the router, fan-out executor and streaming adapter
read it, none of them mutate it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TaskType(str, Enum):
    """Category of a request, shaping prompt construction and backend choice."""

    ENHANCE = "enhance"
    SUMMARIZE = "summarize"
    GENERATE_STEPS = "generate-steps"
    ELABORATE = "elaborate"
    REFINE = "refine"

    @property
    def is_deep(self) -> bool:
        """Whether the task implies deeper reasoning (adds a fan-out call)."""
        return self in (TaskType.ELABORATE, TaskType.GENERATE_STEPS)

    @classmethod
    def parse(cls, value: object) -> "TaskType | None":
        """Return the matching TaskType, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


DEFAULT_TASK_TYPE = TaskType.ENHANCE


class TaskContext(BaseModel):
    """Optional caller context for a request.

    Attributes:
        goal: The user's overarching goal, quoted into prompts.
        history: Earlier conversation turns, oldest first.
        task_type: Caller-supplied task type; used when routing fails.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    goal: str | None = None
    history: tuple[str, ...] = Field(default_factory=tuple)
    task_type: TaskType | None = Field(default=None, alias="taskType")

    @property
    def effective_task_type(self) -> TaskType:
        """Caller task type, or the default when none was supplied."""
        return self.task_type or DEFAULT_TASK_TYPE
