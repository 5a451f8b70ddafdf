"""Spotify release adapter.

Hey future me - Spotify has no "tracks of an artist" endpoint that is ordered by date.
We use the artist's albums+singles (that's what a release IS on Spotify) and announce the
album id. release_date comes with a precision: "2024", "2024-03" or "2024-03-15".
"""

import logging
from datetime import UTC, datetime
from typing import Any

from backstage.domain.entities import Platform, Release
from backstage.domain.ports.platform import IPlatformAdapter
from backstage.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

_DATE_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


class SpotifyReleaseAdapter(IPlatformAdapter):
    """IPlatformAdapter over the Spotify Web API."""

    def __init__(self, client: SpotifyClient) -> None:
        self._client = client

    @property
    def platform(self) -> Platform:
        return Platform.SPOTIFY

    async def fetch_latest_releases(
        self, external_user_id: str, limit: int
    ) -> list[Release]:
        albums = await self._client.get_artist_albums(external_user_id, limit=limit)

        releases = [
            release
            for release in (self._convert_album(album) for album in albums)
            if release is not None
        ]
        # Spotify groups albums before singles, not by date. Newest first like every adapter.
        releases.sort(
            key=lambda r: r.published_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
        return releases[:limit]

    @staticmethod
    def _convert_album(album: dict[str, Any]) -> Release | None:
        album_id = album.get("id")
        if not album_id:
            return None

        images = album.get("images") or []
        external_urls = album.get("external_urls") or {}

        return Release(
            platform=Platform.SPOTIFY,
            external_track_id=album_id,
            title=album.get("name") or "Untitled",
            published_at=parse_release_date(
                album.get("release_date"), album.get("release_date_precision")
            ),
            listen_url=external_urls.get("spotify")
            or f"https://open.spotify.com/album/{album_id}",
            artwork_url=images[0].get("url") if images else None,
        )


def parse_release_date(value: str | None, precision: str | None = None) -> datetime | None:
    """Parse a Spotify release_date of any precision into a UTC datetime."""
    if not value:
        return None

    formats = [_DATE_FORMATS[precision]] if precision in _DATE_FORMATS else []
    formats += [fmt for fmt in _DATE_FORMATS.values() if fmt not in formats]

    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue

    logger.debug("Unparseable Spotify release_date %r", value)
    return None


__all__ = ["SpotifyReleaseAdapter", "parse_release_date"]
