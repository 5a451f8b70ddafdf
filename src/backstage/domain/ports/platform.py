"""
Platform adapter interface for the release check.

Hey future me - this is the ONE capability every music platform has to provide
for the release check: "give me the latest N releases of this account".
SoundCloud (RSS feed) and Spotify (Web API) both implement it. The orchestrator
never branches on platform names, it just asks the registry for an adapter.

Implementation checklist for a new platform:
1. Add the value to Platform in domain/entities/release.py
2. Implement IPlatformAdapter, convert raw responses to Release (never leak JSON/XML)
3. Map throttling to RateLimitedError, everything else to PlatformUnavailableError
4. Register it in infrastructure/plugins/registry.py
"""

from abc import ABC, abstractmethod

from backstage.domain.entities import Platform, Release


class IPlatformAdapter(ABC):
    """Fetches the latest releases of an external account on one platform."""

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Platform this adapter talks to."""
        pass

    @abstractmethod
    async def fetch_latest_releases(
        self, external_user_id: str, limit: int
    ) -> list[Release]:
        """Fetch up to `limit` releases, newest first.

        Args:
            external_user_id: Account id on the platform (opaque string)
            limit: Maximum number of releases to return

        Returns:
            Releases ordered newest first. Empty list if the account has none.

        Raises:
            PlatformUnavailableError: Network, auth or parse failure
            RateLimitedError: Platform throttled the request
        """
        pass


__all__ = ["IPlatformAdapter"]
