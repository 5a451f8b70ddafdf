"""Shared pytest fixtures."""

from collections.abc import AsyncGenerator

import pytest

from backstage.config import Settings
from backstage.config.settings import DatabaseSettings
from backstage.infrastructure import rate_limiter
from backstage.infrastructure.persistence.database import Database


# Hey future me - the limiters are process-wide singletons. A test that provokes a 429
# blocks the bucket for seconds, so every test starts with fresh ones.
@pytest.fixture(autouse=True)
def fresh_rate_limiters(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rate_limiter, "_limiters", {})


@pytest.fixture
def settings() -> Settings:
    """Settings with an in-memory database and no real credentials."""
    return Settings(
        database=DatabaseSettings(url="sqlite+aiosqlite://"),
        cron_secret="test-cron-secret",
        base_url="https://thebackstage.app",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """In-memory SQLite database with all tables created."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()
