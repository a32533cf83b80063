"""API route handlers for response-orchestrator.

Routes:
- orchestrate: /v1/orchestrate, /v1/orchestrate/stream
- health: /health, /health/ready
"""

__all__: list[str] = []
