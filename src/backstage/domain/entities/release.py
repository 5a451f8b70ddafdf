"""Release and ledger entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


# Hey future me, Platform values are stored as strings in the DB and used as JSON keys
# in the trigger response ("soundcloud", "spotify"). Order of declaration is the order
# platforms are checked and reported - SoundCloud first, like the original cron.
class Platform(str, Enum):
    """Music platform a release was published on."""

    SOUNDCLOUD = "soundcloud"
    SPOTIFY = "spotify"

    @property
    def label(self) -> str:
        """Human readable platform name for emails and logs."""
        return {"soundcloud": "SoundCloud", "spotify": "Spotify"}[self.value]


@dataclass(frozen=True)
class Release:
    """Platform-agnostic release fetched from a Platform Adapter.

    Transient: fetched fresh on every run, never stored by itself. Only its
    (platform, external_track_id) pair ends up in the Track Ledger.
    """

    platform: Platform
    external_track_id: str
    title: str
    published_at: datetime | None
    listen_url: str
    artwork_url: str | None = None

    @property
    def ledger_key(self) -> tuple[str, str]:
        return (self.platform.value, self.external_track_id)


@dataclass(frozen=True)
class NotifiedRelease:
    """Track Ledger entry: release X was announced to user Y's audience.

    Unique on (platform, external_track_id, user_id). sent_count is the only
    field that changes after creation.
    """

    platform: Platform
    external_track_id: str
    user_id: int
    sent_count: int = 0
    notified_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    title: str | None = None
