"""response-orchestrator: multi-backend LLM response orchestration.

Fans one prompt out to several chat-completion backends, ranks the
candidates with a judge backend, optionally synthesizes them, and returns a
single answer with provenance metadata. A streaming path relays one
backend's token stream to a callback.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
