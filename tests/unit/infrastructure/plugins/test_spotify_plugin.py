"""Tests for the Spotify release adapter."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from backstage.domain.entities import Platform
from backstage.infrastructure.integrations.spotify_client import SpotifyClient
from backstage.infrastructure.plugins.spotify_plugin import (
    SpotifyReleaseAdapter,
    parse_release_date,
)


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock(spec=SpotifyClient)
    mock.get_artist_albums = AsyncMock()
    return mock


class TestParseReleaseDate:
    @pytest.mark.parametrize(
        ("value", "precision", "expected"),
        [
            ("2026-09-12", "day", datetime(2026, 9, 12, tzinfo=UTC)),
            ("2026-09", "month", datetime(2026, 9, 1, tzinfo=UTC)),
            ("2026", "year", datetime(2026, 1, 1, tzinfo=UTC)),
            ("2026-09-12", None, datetime(2026, 9, 12, tzinfo=UTC)),
        ],
    )
    def test_precisions(self, value: str, precision: str | None, expected: datetime) -> None:
        assert parse_release_date(value, precision) == expected

    def test_garbage(self) -> None:
        assert parse_release_date("soon", "day") is None
        assert parse_release_date(None) is None


class TestSpotifyReleaseAdapter:
    async def test_converts_and_sorts_newest_first(self, client: MagicMock) -> None:
        client.get_artist_albums.return_value = [
            {
                "id": "album-old",
                "name": "Old LP",
                "release_date": "2024",
                "release_date_precision": "year",
                "external_urls": {"spotify": "https://open.spotify.com/album/album-old"},
                "images": [{"url": "https://i.scdn.co/image/big"}, {"url": "https://i.scdn.co/image/small"}],
            },
            {"id": "single-new", "name": "New Single", "release_date": "2026-09-12", "release_date_precision": "day"},
        ]

        releases = await SpotifyReleaseAdapter(client).fetch_latest_releases("artist-1", 5)

        assert [r.external_track_id for r in releases] == ["single-new", "album-old"]
        old = releases[1]
        assert old.platform is Platform.SPOTIFY
        assert old.artwork_url == "https://i.scdn.co/image/big"
        assert releases[0].listen_url == "https://open.spotify.com/album/single-new"
        assert releases[0].artwork_url is None
        client.get_artist_albums.assert_awaited_once_with("artist-1", limit=5)

    async def test_albums_without_id_are_skipped(self, client: MagicMock) -> None:
        client.get_artist_albums.return_value = [{"name": "ghost"}, {"id": "a-1", "name": ""}]

        [release] = await SpotifyReleaseAdapter(client).fetch_latest_releases("artist-1", 5)

        assert release.external_track_id == "a-1"
        assert release.title == "Untitled"

    async def test_limit(self, client: MagicMock) -> None:
        client.get_artist_albums.return_value = [
            {"id": f"a-{i}", "release_date": f"2026-09-{i + 10}"} for i in range(5)
        ]

        releases = await SpotifyReleaseAdapter(client).fetch_latest_releases("artist-1", 2)

        assert [r.external_track_id for r in releases] == ["a-4", "a-3"]
