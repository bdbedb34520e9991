"""
FastAPI application factory with middleware, CORS, request tracing and
engine error mapping.
"""

import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from controltower import __version__
from controltower.config import get_settings
from controltower.errors import (
    ConfigurationError,
    ControlTowerError,
    RcaNotFoundError,
    StorageError,
    ValidationError,
)
from controltower.routers import dashboard, exports, facts, rca
from controltower.utils.logging import bind_request_context, configure_logging, get_logger

# Configure logging at module level
configure_logging()
logger = get_logger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 422,
    RcaNotFoundError: 404,
    ConfigurationError: 500,
    StorageError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings = get_settings()

    logger.info(
        "application_startup",
        version=app.version,
        storage_backend=settings.storage_backend,
        dev_mode=settings.dev_mode,
    )

    if settings.storage_backend == "duckdb":
        Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)

    yield

    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Clinic Control Tower API",
        description="Metrics snapshot, prioritized alerts and RCA tracking for clinics",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # Request tracing middleware
    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Add request ID to all requests and log their outcome."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        bind_request_context(request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )

            return response
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )

    @app.exception_handler(ControlTowerError)
    async def control_tower_error_handler(request: Request, exc: ControlTowerError):
        """Map engine errors to HTTP status codes."""
        status_code = next(
            (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
            500,
        )
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "engine_error",
            error_type=type(exc).__name__,
            error=exc.message,
            status_code=status_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "error": exc.message,
                "error_type": type(exc).__name__,
                "details": exc.details,
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "version": app.version,
            "storage_backend": settings.storage_backend,
        }

    # Include routers
    app.include_router(dashboard.router, prefix="/api/v1/dashboard", tags=["Dashboard"])
    app.include_router(facts.router, prefix="/api/v1/facts", tags=["Facts"])
    app.include_router(rca.router, prefix="/api/v1/rca", tags=["RCA"])
    app.include_router(exports.router, prefix="/api/v1/exports", tags=["Exports"])

    logger.info("application_configured", routers_count=4)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "controltower.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
