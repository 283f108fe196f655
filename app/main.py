"""Main application module for the guest selfie matching service."""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router as api_v1_router
from app.core.config import Settings, settings as default_settings
from app.core.container import ServiceContainer
from app.core.exceptions import ServiceNotInitializedError
from app.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    config: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to build the application from
        container: Pre-built service container, initialized during startup

    Returns:
        FastAPI: Configured application
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, None]:
        """Handle application startup and shutdown events."""
        logger.info(
            "Starting up guest selfie matching service",
            version=config.VERSION,
            environment=config.ENVIRONMENT,
        )

        services = container or ServiceContainer(config)
        await services.initialize()
        app.state.container = services
        logger.info("Initialized application services")

        yield

        logger.info("Shutting down guest selfie matching service")
        await services.cleanup()
        app.state.container = None
        logger.info("Cleaned up application resources")

    app = FastAPI(
        title=config.PROJECT_NAME,
        version=config.VERSION,
        openapi_url=f"{config.API_V1_STR}/openapi.json",
        docs_url="/docs" if config.ENVIRONMENT == "development" else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_v1_router, prefix=config.API_V1_STR)

    @app.exception_handler(ServiceNotInitializedError)
    async def service_not_initialized_handler(request: Request, exc: ServiceNotInitializedError) -> JSONResponse:
        logger.error("Service requested before initialization", error=exc.message)
        return JSONResponse(status_code=503, content={"detail": exc.message})

    @app.get("/health")
    async def health_check() -> dict:
        """Basic health check endpoint.

        Returns:
            dict: Health status
        """
        return {"status": "healthy"}

    return app


setup_logging()
app = create_app()
