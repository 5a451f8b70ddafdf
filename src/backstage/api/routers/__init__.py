"""API router initialization."""

# Hey future me, this is the API router aggregator. It gets mounted at /api in main.py, so the
# trigger ends up at /api/check-music-platforms. Health probes are NOT in here - they live at
# /health/* outside the /api prefix (see main.create_app).

from fastapi import APIRouter

from backstage.api.routers import execution_history, release_checks

api_router = APIRouter()

api_router.include_router(release_checks.router, tags=["Release Checks"])
api_router.include_router(execution_history.router, tags=["Execution History"])

__all__ = ["api_router"]
