"""FastAPI application factory.

Run locally with:

    uvicorn backstage.main:app --reload
"""

from fastapi import FastAPI

from backstage.api.exception_handlers import register_exception_handlers
from backstage.api.routers import api_router, health
from backstage.config import get_settings
from backstage.infrastructure.lifecycle import lifespan


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Release check orchestrator: new SoundCloud/Spotify releases to fan emails",
        version="0.4.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.include_router(health.router, prefix="/health", tags=["Health"])

    return app


app = create_app()
