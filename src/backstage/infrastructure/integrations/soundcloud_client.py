"""SoundCloud public RSS feed client.

Hey future me - SoundCloud closed API registrations years ago, but every account
still has a public podcast-style feed:

    https://feeds.soundcloud.com/users/soundcloud:users:{id}/sounds.rss

No auth, no token. The catch: it is XML, items can be missing fields, and a feed with
exactly one track is still a perfectly valid feed. Parsing returns plain dicts, the
conversion to Release happens in the plugin.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any

import httpx

from backstage.config.settings import SoundCloudSettings
from backstage.domain.exceptions import PlatformUnavailableError, RateLimitedError
from backstage.infrastructure.integrations.http_pool import HttpClientPool
from backstage.infrastructure.rate_limiter import get_soundcloud_limiter

logger = logging.getLogger(__name__)

_PLATFORM = "soundcloud"


class SoundCloudClient:
    """Fetches and parses a user's SoundCloud RSS feed."""

    def __init__(
        self,
        settings: SoundCloudSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = await HttpClientPool.get_client()
        return self._client

    def feed_url(self, user_id: str) -> str:
        return f"{self.settings.feed_base_url}{user_id}/sounds.rss"

    async def fetch_feed(self, user_id: str) -> list[dict[str, Any]]:
        """Fetch the feed and return its items in feed order (newest first).

        Raises:
            RateLimitedError: HTTP 429
            PlatformUnavailableError: Network error, HTTP >= 400, malformed XML
        """
        client = await self._get_client()
        rate_limiter = get_soundcloud_limiter()
        url = self.feed_url(user_id)

        try:
            async with rate_limiter:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise PlatformUnavailableError(_PLATFORM, f"feed request failed: {e}") from e

        if response.status_code == 429:
            retry_after_str = response.headers.get("Retry-After")
            retry_after = int(retry_after_str) if retry_after_str and retry_after_str.isdigit() else None
            rate_limiter.penalize(retry_after)
            raise RateLimitedError(_PLATFORM, retry_after=retry_after)

        if response.status_code >= 400:
            raise PlatformUnavailableError(
                _PLATFORM,
                f"feed for {user_id} returned {response.status_code}",
                status_code=response.status_code,
            )

        items = self.parse_feed(response.text)
        logger.debug("SoundCloud feed %s parsed: %d items", user_id, len(items))
        return items

    @classmethod
    def parse_feed(cls, xml_text: str) -> list[dict[str, Any]]:
        """Parse RSS XML into item dicts (guid, link, title, pub_date, image)."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise PlatformUnavailableError(_PLATFORM, f"malformed feed XML: {e}") from e

        channel = root.find("channel")
        if channel is None:
            raise PlatformUnavailableError(_PLATFORM, "invalid RSS feed structure (no channel)")

        return [cls._parse_item(item) for item in channel.findall("item")]

    @classmethod
    def _parse_item(cls, item: ET.Element) -> dict[str, Any]:
        image = cls._child(item, "image")
        return {
            "guid": (cls._child_text(item, "guid") or "").strip(),
            "link": (cls._child_text(item, "link") or "").strip(),
            "title": (cls._child_text(item, "title") or "").strip(),
            "pub_date": (cls._child_text(item, "pubDate") or "").strip(),
            # itunes:image carries the URL as href attribute, not as text
            "image": image.get("href") if image is not None else None,
        }

    @staticmethod
    def _child(node: ET.Element, local_name: str) -> ET.Element | None:
        for child in list(node):
            if child.tag.rsplit("}", 1)[-1] == local_name:
                return child
        return None

    @classmethod
    def _child_text(cls, node: ET.Element, local_name: str) -> str | None:
        child = cls._child(node, local_name)
        return child.text if child is not None else None


__all__ = ["SoundCloudClient"]
