"""SoundCloud release adapter.

Hey future me - converts raw feed items into Release entities. The feed guid looks like
"tag:soundcloud,2010:tracks/123456" and is the stable id we dedupe on. Items without a
guid fall back to their link (same as the dashboard's track import does).
"""

import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

from backstage.domain.entities import Platform, Release
from backstage.domain.ports.platform import IPlatformAdapter
from backstage.infrastructure.integrations.soundcloud_client import SoundCloudClient

logger = logging.getLogger(__name__)


class SoundCloudReleaseAdapter(IPlatformAdapter):
    """IPlatformAdapter over the public SoundCloud RSS feed."""

    def __init__(self, client: SoundCloudClient) -> None:
        self._client = client

    @property
    def platform(self) -> Platform:
        return Platform.SOUNDCLOUD

    async def fetch_latest_releases(
        self, external_user_id: str, limit: int
    ) -> list[Release]:
        items = await self._client.fetch_feed(external_user_id)

        releases: list[Release] = []
        for item in items:
            release = self._convert_item(item)
            if release is None:
                logger.debug("Skipping SoundCloud feed item without id: %s", item.get("title"))
                continue
            releases.append(release)
            if len(releases) >= limit:
                break
        return releases

    @staticmethod
    def _convert_item(item: dict[str, Any]) -> Release | None:
        track_id = item.get("guid") or item.get("link")
        if not track_id:
            return None

        return Release(
            platform=Platform.SOUNDCLOUD,
            external_track_id=track_id,
            title=item.get("title") or "Untitled",
            published_at=_parse_pub_date(item.get("pub_date")),
            listen_url=item.get("link") or "",
            artwork_url=item.get("image"),
        )


def _parse_pub_date(value: str | None) -> datetime | None:
    """Parse an RFC 822 pubDate. Broken dates become None, not an error."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


__all__ = ["SoundCloudReleaseAdapter"]
