"""Tests for the SoundCloud release adapter."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from backstage.domain.entities import Platform
from backstage.infrastructure.integrations.soundcloud_client import SoundCloudClient
from backstage.infrastructure.plugins.soundcloud_plugin import SoundCloudReleaseAdapter


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock(spec=SoundCloudClient)
    mock.fetch_feed = AsyncMock()
    return mock


def item(guid: str = "", link: str = "", title: str = "Midnight", pub_date: str = "", image: str | None = None) -> dict:
    return {"guid": guid, "link": link, "title": title, "pub_date": pub_date, "image": image}


class TestSoundCloudReleaseAdapter:
    async def test_converts_feed_items(self, client: MagicMock) -> None:
        client.fetch_feed.return_value = [
            item(
                guid="tag:soundcloud,2010:tracks/2001",
                link="https://soundcloud.com/geebeat/midnight",
                pub_date="Tue, 30 Sep 2026 18:00:00 +0000",
                image="https://i1.sndcdn.com/a.jpg",
            )
        ]

        [release] = await SoundCloudReleaseAdapter(client).fetch_latest_releases("123", 5)

        assert release.platform is Platform.SOUNDCLOUD
        assert release.external_track_id == "tag:soundcloud,2010:tracks/2001"
        assert release.title == "Midnight"
        assert release.listen_url == "https://soundcloud.com/geebeat/midnight"
        assert release.artwork_url == "https://i1.sndcdn.com/a.jpg"
        assert release.published_at == datetime(2026, 9, 30, 18, 0, tzinfo=UTC)
        client.fetch_feed.assert_awaited_once_with("123")

    async def test_link_is_fallback_id(self, client: MagicMock) -> None:
        client.fetch_feed.return_value = [item(link="https://soundcloud.com/geebeat/x", title="")]

        [release] = await SoundCloudReleaseAdapter(client).fetch_latest_releases("123", 5)

        assert release.external_track_id == "https://soundcloud.com/geebeat/x"
        assert release.title == "Untitled"

    async def test_items_without_id_are_skipped(self, client: MagicMock) -> None:
        client.fetch_feed.return_value = [item(), item(guid="g-1")]

        releases = await SoundCloudReleaseAdapter(client).fetch_latest_releases("123", 5)

        assert [r.external_track_id for r in releases] == ["g-1"]

    async def test_limit(self, client: MagicMock) -> None:
        client.fetch_feed.return_value = [item(guid=f"g-{i}") for i in range(10)]

        releases = await SoundCloudReleaseAdapter(client).fetch_latest_releases("123", 3)

        assert [r.external_track_id for r in releases] == ["g-0", "g-1", "g-2"]

    async def test_broken_pub_date_is_none(self, client: MagicMock) -> None:
        client.fetch_feed.return_value = [item(guid="g-1", pub_date="yesterday-ish")]

        [release] = await SoundCloudReleaseAdapter(client).fetch_latest_releases("123", 5)

        assert release.published_at is None
