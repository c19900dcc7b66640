"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.content.routes import router as content_router
from app.api.content.schemas import HealthResponse
from app.config import settings
from app.core.database import close_db
from app.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()

    logger.info(
        "Starting content engine",
        extra={
            "environment": settings.environment,
            "version": settings.app_version,
            "model_ideation": settings.get_model("ideation"),
        },
    )

    yield

    logger.info("Shutting down content engine")
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Itinerary cascade and ideation pipelines: entity resolution, "
            "relationship linking and de-duplicated content briefs"
        ),
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.include_router(content_router)

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health check",
        description="Return service health status and version information.",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=settings.app_version)

    return app


app = create_app()
