"""pytest configuration and fixtures for response-orchestrator tests.

Fixtures are minimal and focused: a backend roster with distinct model
identifiers per role, settings built from it, and a scripted transport.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from src.core.config import BackendRoster, Settings
from src.core.logging import reset_logging
from tests.unit.providers.mock_transport import ScriptedTransport


# =============================================================================
# Constants
# =============================================================================

ROUTER_MODEL = "router-model"
PRIMARY_MODEL = "primary-model"
FAST_MODEL = "fast-model"
STRUCTURED_MODEL = "structured-model"
JUDGE_MODEL = "judge-model"
SYNTH_MODEL = "synth-model"
FALLBACK_MODEL = "fallback-model"
STREAM_MODEL = "stream-model"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (require reachable backends)")


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep real ORCHESTRATOR_* variables out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("ORCHESTRATOR_"):
            monkeypatch.delenv(key, raising=False)
    yield
    reset_logging()


@pytest.fixture
def roster() -> BackendRoster:
    """Backend roster with one distinct identifier per role."""
    return BackendRoster(
        router=ROUTER_MODEL,
        primary=PRIMARY_MODEL,
        fast=FAST_MODEL,
        structured=STRUCTURED_MODEL,
        judge=JUDGE_MODEL,
        synthesizer=SYNTH_MODEL,
        fallback=FALLBACK_MODEL,
        streaming=STREAM_MODEL,
    )


@pytest.fixture
def settings(roster: BackendRoster) -> Settings:
    """Settings wired to the test roster, with short timeouts."""
    return Settings(
        backends=roster,
        api_key="test-key",
        direct_timeout_s=0.2,
        stream_timeout_s=0.5,
        tracing_enabled=False,
    )


@pytest.fixture
def transport() -> ScriptedTransport:
    """Empty scripted transport; tests add replies per model."""
    return ScriptedTransport()
