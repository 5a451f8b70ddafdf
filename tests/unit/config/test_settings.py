"""Tests for settings validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from backstage.config import Settings
from backstage.config.settings import DatabaseSettings, ReleaseCheckSettings


class TestReleaseCheckSettings:
    def test_defaults(self) -> None:
        settings = ReleaseCheckSettings()

        assert settings.max_concurrency == 4
        assert settings.lookback_limit == 5
        assert settings.enabled_platforms == ["soundcloud", "spotify"]

    @pytest.mark.parametrize(
        "field", ["platform_timeout_seconds", "send_timeout_seconds", "finalize_margin_seconds"]
    )
    def test_timeouts_must_fit_budget(self, field: str) -> None:
        with pytest.raises(ValidationError, match=field):
            ReleaseCheckSettings(
                time_budget_seconds=10,
                **{
                    "platform_timeout_seconds": 2,
                    "send_timeout_seconds": 2,
                    "finalize_margin_seconds": 1,
                    field: 10,
                },
            )

    def test_concurrency_at_least_one(self) -> None:
        with pytest.raises(ValidationError):
            ReleaseCheckSettings(max_concurrency=0)

    def test_unknown_platform_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ReleaseCheckSettings(enabled_platforms=["bandcamp"])


class TestNestedEnv:
    def test_double_underscore_delimiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELEASE_CHECK__MAX_CONCURRENCY", "6")
        monkeypatch.setenv("CRON_SECRET", "s3cret")

        settings = Settings()

        assert settings.release_check.max_concurrency == 6
        assert settings.cron_secret == "s3cret"


class TestSqlitePath:
    def test_file_database(self) -> None:
        settings = Settings(database=DatabaseSettings(url="sqlite+aiosqlite:///./data/backstage.db"))

        assert settings._get_sqlite_db_path() == Path("./data/backstage.db")

    @pytest.mark.parametrize(
        "url",
        ["sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:", "postgresql+asyncpg://u:p@db/backstage"],
    )
    def test_no_path(self, url: str) -> None:
        assert Settings(database=DatabaseSettings(url=url))._get_sqlite_db_path() is None
