"""Configuration module for Backstage."""

from .settings import (
    DatabaseSettings,
    MailgunSettings,
    ReleaseCheckSettings,
    Settings,
    SoundCloudSettings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "MailgunSettings",
    "ReleaseCheckSettings",
    "Settings",
    "SoundCloudSettings",
    "SpotifySettings",
    "get_settings",
]
