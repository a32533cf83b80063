"""Multi-backend response orchestration.

Modules:
- orchestrator: Orchestrator entry point (non-streaming and streaming)
- router: TaskRouter, classifies requests and proposes backends
- fanout: FanOutExecutor, concurrent candidate calls
- evaluator: ResponseEvaluator, judge-based ranking
- synthesizer: ResponseSynthesizer, merges low-confidence candidates
- streaming: StreamingAdapter, relays one backend's deltas
- fallback: FallbackPolicy, single-shot baseline call
- state: per-request state machine
- json_extract: strict JSON extraction from model text
"""

__all__: list[str] = []
