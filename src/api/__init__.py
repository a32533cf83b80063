"""HTTP surface for response-orchestrator."""

__all__: list[str] = []
