"""
Platform adapter registry.

Hey future me - this is where the release check looks up "who talks to SoundCloud".
Adapters are registered from configuration in build_platform_registry(); Spotify is
only registered when credentials are present, so an unconfigured deployment just checks
SoundCloud instead of producing one error per user.

Usage:
    registry = build_platform_registry(settings)
    adapter = registry.require(Platform.SOUNDCLOUD)
"""

import logging

import httpx

from backstage.config.settings import Settings
from backstage.domain.entities import Platform
from backstage.domain.ports.platform import IPlatformAdapter
from backstage.infrastructure.integrations.soundcloud_client import SoundCloudClient
from backstage.infrastructure.integrations.spotify_client import SpotifyClient
from backstage.infrastructure.plugins.soundcloud_plugin import SoundCloudReleaseAdapter
from backstage.infrastructure.plugins.spotify_plugin import SpotifyReleaseAdapter

logger = logging.getLogger(__name__)


class PlatformAdapterRegistry:
    """Central registry of platform adapters, one per Platform."""

    def __init__(self) -> None:
        self._adapters: dict[Platform, IPlatformAdapter] = {}

    def register(self, adapter: IPlatformAdapter) -> None:
        """Register an adapter. Replaces an existing one for the same platform."""
        self._adapters[adapter.platform] = adapter

    def require(self, platform: Platform) -> IPlatformAdapter:
        """Get an adapter, raising KeyError if it is not registered."""
        adapter = self._adapters.get(platform)
        if adapter is None:
            raise KeyError(f"No adapter registered for {platform.value}")
        return adapter

    def is_registered(self, platform: Platform) -> bool:
        return platform in self._adapters

    @property
    def available_platforms(self) -> list[Platform]:
        """Registered platforms in Platform declaration order."""
        return [platform for platform in Platform if platform in self._adapters]


def build_platform_registry(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> PlatformAdapterRegistry:
    """Create a registry with every adapter the configuration allows."""
    registry = PlatformAdapterRegistry()
    enabled = set(settings.release_check.enabled_platforms)

    if Platform.SOUNDCLOUD.value in enabled:
        registry.register(
            SoundCloudReleaseAdapter(SoundCloudClient(settings.soundcloud, http_client))
        )

    if Platform.SPOTIFY.value in enabled:
        if settings.spotify.is_configured:
            registry.register(
                SpotifyReleaseAdapter(SpotifyClient(settings.spotify, http_client))
            )
        else:
            logger.warning(
                "Spotify is enabled but SPOTIFY__CLIENT_ID/SECRET are missing - skipping Spotify checks"
            )

    logger.info(
        "Release check platforms: %s",
        ", ".join(p.label for p in registry.available_platforms) or "none",
    )
    return registry


__all__ = ["PlatformAdapterRegistry", "build_platform_registry"]
