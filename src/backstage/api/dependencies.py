"""Dependency injection for API endpoints."""

import hmac
import logging
from typing import cast

from fastapi import Depends, Header, HTTPException, Request

from backstage.application.services.release_check_service import ReleaseCheckService
from backstage.config import Settings, get_settings
from backstage.domain.exceptions import AuthenticationError, ConfigurationError
from backstage.domain.ports import IExecutionLedger
from backstage.infrastructure.persistence.database import Database

logger = logging.getLogger(__name__)


# Hey future me, everything below comes from app.state, which lifecycle.lifespan() fills at
# startup. If something is missing, startup went wrong - answer 503 instead of crashing with
# AttributeError. Tests bypass all of this via app.dependency_overrides.
def get_database(request: Request) -> Database:
    """Get the Database from app state.

    Raises:
        HTTPException: 503 if the database was not initialized
    """
    if not hasattr(request.app.state, "db"):
        raise HTTPException(status_code=503, detail="Database not initialized")
    return cast(Database, request.app.state.db)


def get_release_check_service(request: Request) -> ReleaseCheckService:
    """Get the wired ReleaseCheckService from app state.

    Raises:
        HTTPException: 503 if the service was not initialized
    """
    if not hasattr(request.app.state, "release_check_service"):
        raise HTTPException(status_code=503, detail="Release check not initialized")
    return cast(ReleaseCheckService, request.app.state.release_check_service)


def get_execution_ledger(request: Request) -> IExecutionLedger:
    """Get the execution ledger (history reads) from app state."""
    if not hasattr(request.app.state, "execution_ledger"):
        raise HTTPException(status_code=503, detail="Execution ledger not initialized")
    return cast(IExecutionLedger, request.app.state.execution_ledger)


# Yo, the scheduler sends "Authorization: Bearer <CRON_SECRET>". An EMPTY secret in config
# means "not set up yet" - refuse with 503 rather than letting any caller trigger mass email.
# compare_digest keeps the check constant-time.
async def verify_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Authorize a scheduler call to the release check trigger.

    Raises:
        ConfigurationError: CRON_SECRET is not configured (503)
        AuthenticationError: Header missing or secret mismatch (401)
    """
    if not settings.cron_secret:
        raise ConfigurationError("Cron secret is not configured")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        token.strip().encode(), settings.cron_secret.encode()
    ):
        logger.warning("Rejected release check trigger: invalid cron secret")
        raise AuthenticationError("Unauthorized")


__all__ = [
    "get_database",
    "get_execution_ledger",
    "get_release_check_service",
    "verify_cron_secret",
]
