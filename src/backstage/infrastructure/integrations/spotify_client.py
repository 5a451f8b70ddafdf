"""Spotify Web API client using the Client Credentials flow."""

import asyncio
import base64
import logging
import time
from typing import Any, cast

import httpx

from backstage.config.settings import SpotifySettings
from backstage.domain.exceptions import (
    ConfigurationError,
    PlatformUnavailableError,
    RateLimitedError,
)
from backstage.infrastructure.integrations.http_pool import HttpClientPool
from backstage.infrastructure.rate_limiter import get_spotify_limiter

logger = logging.getLogger(__name__)

_PLATFORM = "spotify"


class SpotifyClient:
    """HTTP client for the public parts of the Spotify Web API.

    Hey future me - no user OAuth here! The release check only reads public artist
    discographies, so an app token (Client Credentials) is enough. The token lives
    for an hour, we refresh it 5 minutes early so a long fan-out never hits a 401
    halfway through.
    """

    TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL, not a password
    API_BASE_URL = "https://api.spotify.com/v1"
    TOKEN_REFRESH_MARGIN_SECONDS = 300

    def __init__(
        self,
        settings: SpotifySettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._client = http_client
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock: asyncio.Lock | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = await HttpClientPool.get_client()
        return self._client

    def _token_is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and time.monotonic() < self._token_expires_at - self.TOKEN_REFRESH_MARGIN_SECONDS
        )

    async def get_access_token(self) -> str:
        """Return a cached app token, requesting a new one when it is about to expire.

        Raises:
            ConfigurationError: Client id/secret missing
            PlatformUnavailableError: Token endpoint failed
        """
        if self._token_is_fresh():
            return cast(str, self._access_token)

        if not self.settings.is_configured:
            raise ConfigurationError(
                "Spotify credentials are not configured. "
                "Set SPOTIFY__CLIENT_ID and SPOTIFY__CLIENT_SECRET."
            )

        # Two units asking at the same time must not both hit the token endpoint
        if self._token_lock is None:
            self._token_lock = asyncio.Lock()

        async with self._token_lock:
            if self._token_is_fresh():
                return cast(str, self._access_token)

            client = await self._get_client()
            credentials = f"{self.settings.client_id}:{self.settings.client_secret}"
            basic = base64.b64encode(credentials.encode("utf-8")).decode("ascii")

            try:
                response = await client.post(
                    self.TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    headers={
                        "Authorization": f"Basic {basic}",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
            except httpx.HTTPError as e:
                raise PlatformUnavailableError(
                    _PLATFORM, f"token request failed: {e}"
                ) from e

            if response.status_code != 200:
                raise PlatformUnavailableError(
                    _PLATFORM,
                    f"token request rejected ({response.status_code})",
                    status_code=response.status_code,
                )

            payload = response.json()
            self._access_token = payload["access_token"]
            self._token_expires_at = time.monotonic() + int(payload.get("expires_in", 3600))
            logger.debug("Spotify app token refreshed (expires_in=%s)", payload.get("expires_in"))
            return cast(str, self._access_token)

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = 0.0

    async def _api_get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Rate-limited GET against the Web API with error mapping.

        Hey future me - unlike a long-running worker we do NOT retry 429s here. The run is
        time-boxed, so we block the limiter and let the unit fail with RateLimitedError.
        """
        token = await self.get_access_token()
        client = await self._get_client()
        rate_limiter = get_spotify_limiter()
        url = f"{self.API_BASE_URL}{path}"

        try:
            async with rate_limiter:
                response = await client.get(
                    url, params=params, headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as e:
            raise PlatformUnavailableError(_PLATFORM, f"request failed: {e}") from e

        if response.status_code == 429:
            retry_after_str = response.headers.get("Retry-After")
            retry_after = int(retry_after_str) if retry_after_str and retry_after_str.isdigit() else None
            rate_limiter.penalize(retry_after)
            raise RateLimitedError(_PLATFORM, retry_after=retry_after)

        if response.status_code in (401, 403):
            # Token revoked or app disabled - drop it so the next unit asks again
            self.invalidate_token()
            raise PlatformUnavailableError(
                _PLATFORM,
                f"authorization rejected ({response.status_code})",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise PlatformUnavailableError(
                _PLATFORM,
                f"{path} returned {response.status_code}",
                status_code=response.status_code,
            )

        return cast(dict[str, Any], response.json())

    async def get_artist_albums(
        self, artist_id: str, limit: int = 5, market: str | None = None
    ) -> list[dict[str, Any]]:
        """Get an artist's albums and singles, newest first.

        Args:
            artist_id: Spotify artist id
            limit: Max items (Spotify caps at 50)
            market: Market code, defaults to the configured market

        Returns:
            Raw album objects from the `items` array
        """
        data = await self._api_get(
            f"/artists/{artist_id}/albums",
            params={
                "include_groups": "album,single",
                "market": market or self.settings.market,
                "limit": max(1, min(limit, 50)),
            },
        )
        return [item for item in data.get("items", []) if item]


__all__ = ["SpotifyClient"]
