"""Pydantic models for response-orchestrator.

Modules:
- requests: Chat transport request and orchestration API request
- responses: ModelResponse, OrchestratedResponse, RoutingDecision
- context: TaskType, TaskContext
"""

__all__: list[str] = []
