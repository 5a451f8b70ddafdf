"""Liveness and readiness probes.

The cron trigger must only be routed here once readiness passes: an instance without a
database or without a wired release check would answer every trigger with 503.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backstage import __version__

router = APIRouter()


class LivenessStatus(BaseModel):
    status: str = "alive"
    version: str = __version__
    checked_at: datetime


class ReadinessStatus(BaseModel):
    status: str = Field(description="ready or not_ready")
    checked_at: datetime
    database: bool = Field(description="SELECT 1 succeeded")
    release_check: bool = Field(description="Release check service is wired")


@router.get("/live", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    return LivenessStatus(checked_at=datetime.now(UTC))


@router.get("/ready", response_model=ReadinessStatus)
async def readiness_probe(request: Request) -> JSONResponse:
    """200 when the database answers and the release check is wired, 503 otherwise."""
    state = request.app.state
    db = getattr(state, "db", None)
    database_ok = db is not None and await db.ping()
    wired = getattr(state, "release_check_service", None) is not None

    ready = database_ok and wired
    body = ReadinessStatus(
        status="ready" if ready else "not_ready",
        checked_at=datetime.now(UTC),
        database=database_ok,
        release_check=wired,
    )
    return JSONResponse(
        content=body.model_dump(mode="json"),
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
