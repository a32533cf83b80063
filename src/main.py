"""FastAPI application entrypoint for response-orchestrator.

Patterns applied:
- asynccontextmanager lifespan (not the deprecated @app.on_event)
- configure_logging() and setup_tracing() called once in lifespan startup
- One shared HttpChatTransport per process, closed on shutdown
- Docs disabled in production

Run with:
    uvicorn src.main:app --port 8090
or the installed console script:
    response-orchestrator
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from src import __version__
from src.api.error_handlers import register_exception_handlers
from src.api.routes.health import router as health_router
from src.api.routes.orchestrate import router as orchestrate_router
from src.core.config import Settings, get_settings
from src.core.logging import configure_logging, get_logger
from src.observability.tracing import TracingMiddleware, setup_tracing
from src.orchestration.orchestrator import Orchestrator
from src.providers.base import ChatTransport
from src.providers.http_transport import HttpChatTransport


APP_NAME = "response-orchestrator"
APP_DESCRIPTION = "Fan-out, judge and synthesize answers across LLM backends"


def create_app(
    settings: Settings | None = None,
    transport: ChatTransport | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use; get_settings() when omitted.
        transport: Chat transport to use; an HttpChatTransport built from
            settings when omitted.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(level=settings.log_level)
        logger = get_logger(__name__)
        if settings.tracing_enabled:
            setup_tracing(settings.service_name, otlp_endpoint=settings.otlp_endpoint)

        active_transport = transport or HttpChatTransport.from_settings(settings)
        app.state.settings = settings
        app.state.transport = active_transport
        app.state.orchestrator = Orchestrator.from_settings(active_transport, settings)

        logger.info(
            "Application starting",
            service=APP_NAME,
            version=__version__,
            environment=settings.environment,
            port=settings.port,
            credential_configured=settings.api_key is not None,
        )

        yield

        logger.info("Application shutting down", service=APP_NAME)
        await active_transport.aclose()
        app.state.orchestrator = None

    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=__version__,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
        lifespan=lifespan,
    )

    app.include_router(health_router)
    app.include_router(orchestrate_router, prefix="/v1")
    register_exception_handlers(app)
    app.add_middleware(TracingMiddleware, exclude_paths=["/health", "/health/ready"])

    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
