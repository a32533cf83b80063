"""Orchestration API routes.

POST /v1/orchestrate         → OrchestratedResponse (camelCase JSON)
POST /v1/orchestrate/stream  → text/event-stream of {"content": delta} frames,
                               terminated by ``data: [DONE]``
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from src.api.error_handlers import build_error_response
from src.core.exceptions import OrchestratorError, RetriableError
from src.core.logging import get_logger
from src.models.requests import OrchestrateRequest
from src.models.responses import OrchestratedResponse
from src.orchestration.orchestrator import Orchestrator


router = APIRouter(tags=["orchestration"])
logger = get_logger(__name__)

SSE_CONTENT_TYPE = "text/event-stream"
SSE_DONE = "data: [DONE]\n\n"

_STREAM_END = object()


def _get_orchestrator(request: Request) -> Orchestrator:
    """Get the orchestrator from app state or raise 503."""
    orchestrator: Orchestrator | None = getattr(
        request.app.state, "orchestrator", None
    )
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Orchestrator not initialized",
        )
    return orchestrator


def _sse(payload: dict[str, object]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def _stream_events(
    orchestrator: Orchestrator, body: OrchestrateRequest
) -> AsyncIterator[str]:
    """Bridge the callback-driven stream to an SSE body.

    The orchestrator runs in its own task feeding a queue. If the client
    disconnects, the generator is closed and the task is cancelled, which
    closes the backend connection.
    """
    queue: asyncio.Queue[object] = asyncio.Queue()

    async def on_chunk(delta: str) -> None:
        queue.put_nowait(delta)

    async def produce() -> None:
        try:
            await orchestrator.stream_best_response(body.prompt, on_chunk, body.context)
        finally:
            queue.put_nowait(_STREAM_END)

    task = asyncio.create_task(produce())
    try:
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                break
            yield _sse({"content": item})
        await task
    except OrchestratorError as e:
        logger.warning("Stream ended with error", error=e.message)
        error_type = "retriable" if isinstance(e, RetriableError) else "non_retriable"
        yield _sse(build_error_response(e, error_type).model_dump())
    finally:
        if not task.done():
            task.cancel()

    yield SSE_DONE


@router.post(
    "/orchestrate",
    response_model=OrchestratedResponse,
    response_model_by_alias=True,
    summary="Orchestrated completion",
    description="Fans the prompt out to several backends and returns the best answer.",
    responses={
        502: {"description": "All backends failed"},
        503: {"description": "Service unavailable"},
    },
)
async def orchestrate(request: Request, body: OrchestrateRequest) -> OrchestratedResponse:
    """Return one orchestrated answer for ``body.prompt``."""
    orchestrator = _get_orchestrator(request)
    return await orchestrator.get_best_response(body.prompt, body.context)


@router.post(
    "/orchestrate/stream",
    summary="Streamed completion",
    description="Relays one backend's token stream as server-sent events.",
)
async def orchestrate_stream(request: Request, body: OrchestrateRequest) -> StreamingResponse:
    """Stream deltas for ``body.prompt`` as SSE frames."""
    orchestrator = _get_orchestrator(request)
    return StreamingResponse(
        _stream_events(orchestrator, body),
        media_type=SSE_CONTENT_TYPE,
    )
