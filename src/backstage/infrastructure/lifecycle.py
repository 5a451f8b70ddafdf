"""Application lifecycle management for startup and shutdown tasks.

This module owns the FastAPI lifespan context manager. Everything the API needs is
built here once and hung on app.state:

- app.state.db                     Database (engine + session factory)
- app.state.release_check_service  ReleaseCheckService wired with all adapters
- app.state.execution_ledger       ExecutionLogRepository (history endpoint)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backstage import __version__
from backstage.application.services.audience_service import AudienceService
from backstage.application.services.notification_service import (
    ReleaseNotificationService,
)
from backstage.application.services.release_check_service import (
    ReleaseCheckService,
    RunConfig,
)
from backstage.config import Settings, get_settings
from backstage.domain.exceptions import ConfigurationError
from backstage.infrastructure.integrations.http_pool import HttpClientPool, PoolLimits
from backstage.infrastructure.notifications.mailgun_provider import MailgunEmailProvider
from backstage.infrastructure.observability.logging import configure_logging
from backstage.infrastructure.persistence.database import Database
from backstage.infrastructure.persistence.repositories import (
    AudienceRepository,
    ExecutionLogRepository,
    TrackLedgerRepository,
    UserDirectoryRepository,
)
from backstage.infrastructure.plugins.registry import build_platform_registry

logger = logging.getLogger(__name__)


# Hey future me, SQLite needs its parent directory to exist AND be writable (journal/WAL files
# live next to the .db). Check it before creating the engine - a clear ConfigurationError at
# startup beats "unable to open database file" on the first cron call.
def _validate_sqlite_path(settings: Settings) -> None:
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"SQLite directory '{db_path.parent}' is not writable: {exc}. "
            "Update DATABASE__URL or adjust directory permissions."
        ) from exc


def build_release_check_service(settings: Settings, db: Database) -> ReleaseCheckService:
    """Wire the release check with the SQL repositories and the configured adapters."""
    release_settings = settings.release_check
    email_provider = MailgunEmailProvider(settings.mailgun)
    if not email_provider.is_configured():
        logger.warning("Mailgun is not configured - every send will be reported as failed")

    return ReleaseCheckService(
        user_directory=UserDirectoryRepository(db),
        adapters=build_platform_registry(settings),
        track_ledger=TrackLedgerRepository(db),
        audience=AudienceService(AudienceRepository(db)),
        sender=ReleaseNotificationService(
            email_provider,
            base_url=settings.base_url,
            send_timeout_seconds=release_settings.send_timeout_seconds,
            send_concurrency=release_settings.send_concurrency,
        ),
        execution_ledger=ExecutionLogRepository(db),
        default_config=RunConfig.from_settings(release_settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: logging, SQLite path check, database, release check wiring.
    Shutdown: database engine and the shared HTTP client pool.
    """
    settings = get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    try:
        _validate_sqlite_path(settings)

        HttpClientPool.configure(
            PoolLimits(
                timeout_seconds=settings.release_check.platform_timeout_seconds,
                user_agent=f"{settings.app_name}/{__version__}",
            )
        )

        db = Database(settings)
        app.state.db = db
        logger.info("Database initialized: %s", settings.database.url.split("@")[-1])

        app.state.release_check_service = build_release_check_service(settings, db)
        app.state.execution_ledger = ExecutionLogRepository(db)

        if not settings.cron_secret:
            logger.warning("CRON_SECRET is not set - the release check trigger will answer 503")

        yield
    finally:
        logger.info("Shutting down application")
        if hasattr(app.state, "db"):
            await app.state.db.close()
        await HttpClientPool.close()


__all__ = ["build_release_check_service", "lifespan"]
