"""Tests for the platform adapter registry."""

import pytest

from backstage.config import Settings
from backstage.config.settings import ReleaseCheckSettings, SpotifySettings
from backstage.domain.entities import Platform
from backstage.infrastructure.plugins.registry import (
    PlatformAdapterRegistry,
    build_platform_registry,
)
from backstage.infrastructure.plugins.soundcloud_plugin import SoundCloudReleaseAdapter
from backstage.infrastructure.plugins.spotify_plugin import SpotifyReleaseAdapter


class TestPlatformAdapterRegistry:
    def test_require_unknown_platform(self) -> None:
        registry = PlatformAdapterRegistry()

        assert registry.is_registered(Platform.SPOTIFY) is False
        with pytest.raises(KeyError):
            registry.require(Platform.SPOTIFY)


class TestBuildPlatformRegistry:
    def test_spotify_needs_credentials(self) -> None:
        registry = build_platform_registry(Settings(spotify=SpotifySettings()))

        assert registry.available_platforms == [Platform.SOUNDCLOUD]
        assert isinstance(registry.require(Platform.SOUNDCLOUD), SoundCloudReleaseAdapter)

    def test_both_platforms_when_configured(self) -> None:
        settings = Settings(spotify=SpotifySettings(client_id="id", client_secret="secret"))

        registry = build_platform_registry(settings)

        assert registry.available_platforms == [Platform.SOUNDCLOUD, Platform.SPOTIFY]
        assert isinstance(registry.require(Platform.SPOTIFY), SpotifyReleaseAdapter)

    def test_disabled_platform_is_not_registered(self) -> None:
        settings = Settings(
            spotify=SpotifySettings(client_id="id", client_secret="secret"),
            release_check=ReleaseCheckSettings(enabled_platforms=["spotify"]),
        )

        registry = build_platform_registry(settings)

        assert registry.available_platforms == [Platform.SPOTIFY]
