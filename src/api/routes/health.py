"""Health check API routes.

/health is a liveness probe. /health/ready reports ready only when an
orchestrator has been wired and a bearer credential is configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src import __version__


STATUS_OK = "ok"
STATUS_READY = "ready"
STATUS_NOT_READY = "not_ready"
SERVICE_NAME = "response-orchestrator"
REASON_NOT_INITIALIZED = "Orchestrator not initialized"
REASON_NO_CREDENTIAL = "No API credential configured"


class HealthResponse(BaseModel):
    """Response model for /health."""

    status: str = Field(default=STATUS_OK, examples=["ok"])
    service: str = Field(default=SERVICE_NAME)
    version: str = Field(default=__version__)


class ReadinessResponse(BaseModel):
    """Response model for /health/ready."""

    status: str = Field(examples=["ready", "not_ready"])
    backends: dict[str, str] = Field(
        default_factory=dict,
        description="Configured model identifier per pipeline role",
    )
    reason: str | None = None


router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """Return 200 while the process is serving."""
    return HealthResponse()


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Service is ready", "model": ReadinessResponse},
        503: {"description": "Service is not ready", "model": ReadinessResponse},
    },
    summary="Readiness check",
)
async def readiness_check(request: Request) -> JSONResponse:
    """Return 200 when the orchestrator is wired and has a credential."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    settings = getattr(request.app.state, "settings", None)

    reason: str | None = None
    if orchestrator is None or settings is None:
        reason = REASON_NOT_INITIALIZED
    elif settings.api_key is None:
        reason = REASON_NO_CREDENTIAL

    if reason is not None:
        response = ReadinessResponse(status=STATUS_NOT_READY, reason=reason)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(exclude_none=True),
        )

    response = ReadinessResponse(
        status=STATUS_READY,
        backends=settings.backends.model_dump(),
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response.model_dump(exclude_none=True),
    )
