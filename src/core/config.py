"""Core configuration module for response-orchestrator.

Loads settings from ORCHESTRATOR_* prefixed environment variables using
Pydantic Settings. The backend roster and the bearer credential are external
configuration; nothing here embeds a secret.

Patterns applied:
- pydantic-settings BaseSettings (Pydantic v2 split)
- env_prefix = "ORCHESTRATOR_" for namespace isolation
- env_nested_delimiter = "__" for the backend roster
  (e.g. ORCHESTRATOR_BACKENDS__JUDGE=microsoft/phi-2:hf-inference)
- @field_validator + @classmethod (Pydantic v2 pattern)
- @lru_cache for singleton pattern
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# Backend Roster
# =============================================================================


class BackendRoster(BaseModel):
    """Model identifiers for each role in the orchestration pipeline.

    Any role may point at the same backend as another role.

    Attributes:
        router: Classifies the request and proposes candidates.
        primary: Default primary candidate (creative / expansive).
        fast: Quick, concise alternative candidate.
        structured: Extra candidate for deep task types (outline-oriented).
        judge: Ranks the candidates.
        synthesizer: Merges candidates when confidence is low.
        fallback: Baseline backend called with the raw prompt.
        streaming: Single backend used by the streaming path.
    """

    router: str = "katanemo/Arch-Router-1.5B:hf-inference"
    primary: str = "HuggingFaceTB/SmolLM3-3B:hf-inference"
    fast: str = "TinyLlama/TinyLlama-1.1B-Chat-v1.0:hf-inference"
    structured: str = "katanemo/Arch-Router-1.5B:hf-inference"
    judge: str = "microsoft/phi-2:hf-inference"
    synthesizer: str = "HuggingFaceTB/SmolLM3-3B:hf-inference"
    fallback: str = "HuggingFaceTB/SmolLM3-3B:hf-inference"
    streaming: str = "HuggingFaceTB/SmolLM3-3B:hf-inference"

    def identifiers(self) -> set[str]:
        """Return every configured backend identifier."""
        return set(self.model_dump().values())


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseSettings):
    """Application settings loaded from ORCHESTRATOR_* environment variables.

    Example: ORCHESTRATOR_API_KEY=hf_xxx, ORCHESTRATOR_LOG_LEVEL=DEBUG

    Attributes:
        service_name: Service identifier for logging.
        port: HTTP port (1-65535). Default: 8090.
        host: Bind address. Default: 0.0.0.0.
        environment: Deployment environment. Default: development.
        log_level: Logging verbosity. Default: INFO.
        otlp_endpoint: OTLP gRPC endpoint for span export.
        tracing_enabled: Install a TracerProvider at startup. Default: True.
        api_base_url: OpenAI-compatible chat-completions base URL.
        api_key: Bearer credential sent with every backend call.
        backends: Backend roster.
        direct_timeout_s: Per-call timeout for non-streaming calls.
        stream_timeout_s: Timeout for the streaming call.
        synthesis_confidence_threshold: Synthesize when best confidence is below.
        min_synthesis_length: Synthesized text must be longer than this.
        default_confidence: Confidence reported for an unscored best candidate.
        fallback_confidence: Confidence reported for a fallback answer.
        judge_default_confidence: Score used when the judge omits one.
    """

    # =========================================================================
    # Core Settings
    # =========================================================================
    service_name: str = Field(
        default="response-orchestrator",
        description="Service name for identification",
    )
    port: int = Field(
        default=8090,
        ge=1,
        le=65535,
        description="HTTP server port",
    )
    host: str = Field(
        default="0.0.0.0",
        description="HTTP server bind address",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint; console exporter when unset",
    )
    tracing_enabled: bool = Field(
        default=True,
        description="Install an OpenTelemetry provider at startup",
    )

    # =========================================================================
    # Transport
    # =========================================================================
    api_base_url: str = Field(
        default="https://router.huggingface.co/v1",
        description="Base URL of the OpenAI-compatible chat-completions API",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Bearer credential for the chat-completions API",
    )
    backends: BackendRoster = Field(
        default_factory=BackendRoster,
        description="Model identifier per pipeline role",
    )

    # =========================================================================
    # Timeouts & Sampling
    # =========================================================================
    direct_timeout_s: float = Field(default=10.0, gt=0)
    stream_timeout_s: float = Field(default=15.0, gt=0)
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(default=500, ge=1)

    # =========================================================================
    # Ranking & Synthesis Policy
    # =========================================================================
    synthesis_confidence_threshold: float = Field(default=80.0, ge=0, le=100)
    min_synthesis_length: int = Field(default=50, ge=0)
    default_confidence: float = Field(default=75.0, ge=0, le=100)
    fallback_confidence: float = Field(default=50.0, ge=0, le=100)
    judge_default_confidence: float = Field(default=85.0, ge=0, le=100)

    model_config = {
        "env_prefix": "ORCHESTRATOR_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level to uppercase.

        Raises:
            ValueError: If log level is not valid.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized not in valid_levels:
            msg = f"log_level must be one of {valid_levels}, got '{v}'"
            raise ValueError(msg)
        return normalized

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Drop a trailing slash so paths can be joined uniformly."""
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get singleton Settings instance.

    Returns:
        Cached Settings instance.
    """
    return Settings()
