"""Application settings loaded from environment variables and `.env`.

Hey future me - every section is a plain pydantic model nested in Settings, so
env vars use the double underscore delimiter:

    DATABASE__URL=postgresql+asyncpg://user:pw@db/backstage
    RELEASE_CHECK__MAX_CONCURRENCY=6
    MAILGUN__API_KEY=key-...

Top-level fields (CRON_SECRET, BASE_URL, LOG_LEVEL) are read without prefix.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./backstage.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True


class SpotifySettings(BaseModel):
    """Spotify Web API credentials (Client Credentials flow, public data only)."""

    client_id: str = ""
    client_secret: str = ""
    market: str = "US"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id.strip() and self.client_secret.strip())


class SoundCloudSettings(BaseModel):
    """SoundCloud public RSS feed settings."""

    feed_base_url: str = "https://feeds.soundcloud.com/users/soundcloud:users:"


class MailgunSettings(BaseModel):
    """Mailgun HTTP API settings."""

    api_key: str = ""
    domain: str = "thebackstage.app"
    api_url: str = "https://api.mailgun.net"
    default_sender_name: str = "The Backstage"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip() and self.domain.strip())


# Hey future me - these numbers are tuned for a 60s serverless cron budget.
# The timeouts MUST stay below time_budget_seconds, otherwise one hung SoundCloud
# feed can eat the whole invocation. The validator below enforces it at load time.
class ReleaseCheckSettings(BaseModel):
    """Tuning knobs for the release check run."""

    lookback_limit: int = Field(default=5, ge=1, le=50)
    max_concurrency: int = Field(default=4, ge=1, le=32)
    time_budget_seconds: float = Field(default=55.0, gt=0)
    finalize_margin_seconds: float = Field(default=5.0, ge=0)
    platform_timeout_seconds: float = Field(default=10.0, gt=0)
    send_timeout_seconds: float = Field(default=10.0, gt=0)
    send_concurrency: int = Field(default=10, ge=1)
    enabled_platforms: list[Literal["soundcloud", "spotify"]] = Field(
        default_factory=lambda: ["soundcloud", "spotify"]
    )

    @model_validator(mode="after")
    def _timeouts_fit_budget(self) -> "ReleaseCheckSettings":
        budget = self.time_budget_seconds
        if self.platform_timeout_seconds >= budget:
            raise ValueError("platform_timeout_seconds must be shorter than time_budget_seconds")
        if self.send_timeout_seconds >= budget:
            raise ValueError("send_timeout_seconds must be shorter than time_budget_seconds")
        if self.finalize_margin_seconds >= budget:
            raise ValueError("finalize_margin_seconds must be shorter than time_budget_seconds")
        return self


class ObservabilitySettings(BaseModel):
    """Logging output settings."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "backstage"
    log_level: str = "INFO"
    base_url: str = "http://localhost:3000"
    cron_secret: str = ""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    soundcloud: SoundCloudSettings = Field(default_factory=SoundCloudSettings)
    mailgun: MailgunSettings = Field(default_factory=MailgunSettings)
    release_check: ReleaseCheckSettings = Field(default_factory=ReleaseCheckSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the on-disk SQLite path, or None for in-memory/non-SQLite URLs."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (one parse per process)."""
    return Settings()
