"""FastAPI application for autoframe.

This module provides the FastAPI application with the generate and health
endpoints, scheduler/preview routes, and lifecycle management of the
background scheduler.

Run with:
    uvicorn autoframe.main:app --reload

Examples:
    >>> # Health check
    >>> curl http://localhost:8000/api/health
    >>> {"ok": true, "hasCredential": true}

Tests:
    - tests/unit/test_api.py
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autoframe import __version__
from autoframe.api.deps import Runtime
from autoframe.api.v1 import generate_router
from autoframe.api.v1 import router as v1_router
from autoframe.config import Settings, get_settings
from autoframe.core.errors import ClassifiedError, ErrorKind
from autoframe.core.orchestrator import ProviderOrchestrator
from autoframe.core.scheduler import Clock, wall_clock_ms
from autoframe.schemas import ErrorResponse, HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, retry_delay: int | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, status=status_code, retryDelaySeconds=retry_delay)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Starts the scheduler loop on startup (and enables scheduling when
    AUTO_START is set); stops it on shutdown.
    """
    runtime: Runtime = app.state.runtime
    logger.info(f"Starting autoframe v{__version__}")
    if not runtime.settings.has_credential:
        logger.warning("GEMINI_API_KEY not set. Image generation will fail.")

    runtime.runner.start()
    if runtime.settings.AUTO_START:
        runtime.runner.start_schedule()

    yield

    logger.info("Shutting down autoframe")
    runtime.controller.stop()
    await runtime.runner.stop()


def create_app(
    settings: Settings | None = None,
    orchestrator: ProviderOrchestrator | None = None,
    clock: Clock = wall_clock_ms,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Settings to use; defaults to the cached environment settings.
        orchestrator: Orchestrator override (tests inject fakes here).
        clock: Millisecond clock for the scheduler.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(
        title="autoframe",
        description="Scheduled journal-to-image generation with Gemini and Imagen",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.runtime = Runtime.build(settings, orchestrator=orchestrator, clock=clock)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # /api/generate for browser clients, everything else under /api/v1
    app.include_router(generate_router, prefix="/api")
    app.include_router(v1_router)

    # Exception handlers
    @app.exception_handler(ClassifiedError)
    async def classified_error_handler(request: Request, exc: ClassifiedError):
        """Render generation failures as {error, status, retryDelaySeconds}."""
        if exc.kind == ErrorKind.MISSING_CREDENTIAL:
            logger.error(f"Generation refused: {exc.message}")
        retry_delay = exc.retry_delay_seconds if exc.kind == ErrorKind.QUOTA_EXCEEDED else None
        return _error(exc.response_status, exc.message, retry_delay)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent response format."""
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed requests are caller errors (400)."""
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message)

    # Health endpoints
    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    @app.get("/health", response_model=HealthResponse, tags=["Health"], include_in_schema=False)
    async def health_check() -> HealthResponse:
        """Report whether a provider credential is configured."""
        return HealthResponse(ok=True, hasCredential=app.state.runtime.orchestrator.has_credential)

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Root endpoint with basic info."""
        return {
            "name": "autoframe",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
        }

    @app.get("/api/v1/status", tags=["API"])
    async def api_status() -> dict[str, Any]:
        """API status with provider and model configuration."""
        return {
            "api_version": "v1",
            "app_version": __version__,
            "environment": settings.ENVIRONMENT.value,
            "models": settings.get_model_config(),
        }

    return app


app = create_app()


# Entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "autoframe.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().DEBUG,
    )
