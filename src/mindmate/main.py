"""
MindMate FastAPI Application Entry Point

Main application initialization with:
- Lifespan management (startup/shutdown)
- CORS configuration
- Error handling middleware
- Router registration
- Prometheus metrics endpoint

This is the production entry point for the MindMate backend.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mindmate import __version__
from mindmate.api.dependencies import ServiceContainer
from mindmate.api.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from mindmate.api.v1.router import api_router
from mindmate.config import Settings, get_settings
from mindmate.config.logging_config import configure_logging, get_logger
from mindmate.infrastructure.metrics import metrics_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the service container unless one was supplied, then starts
    the database, monitoring and the escalation scheduler.
    """
    settings: Settings = app.state.settings
    owns_container = app.state.container is None

    logger.info("Starting MindMate application", env=settings.env, version=__version__)

    if owns_container:
        app.state.container = ServiceContainer.build(settings)

    try:
        if owns_container:
            await app.state.container.start()
        logger.info("MindMate application started")

        yield

    finally:
        logger.info("Shutting down MindMate application")
        if owns_container:
            await app.state.container.shutdown()
            app.state.container = None
        logger.info("MindMate application shutdown complete")


def create_application(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Defaults to the environment-derived settings
        container: Prebuilt services; the lifespan neither starts nor
            stops a supplied container

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="MindMate API",
        description="Mental-health signal analysis and tiered peer-support escalation",
        version=__version__,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url="/redoc" if not settings.is_production() else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    register_exception_handlers(app)

    app.include_router(api_router, prefix=f"/api/{settings.api_version}")
    app.include_router(metrics_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        """Root endpoint - basic info."""
        return {
            "name": "MindMate API",
            "version": __version__,
            "status": "operational",
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "mindmate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.env == "development",
        log_level=_settings.log_level.lower(),
    )
