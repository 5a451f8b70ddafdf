"""Tests for the Spotify Client Credentials client."""

import httpx
import pytest

from backstage.config.settings import SpotifySettings
from backstage.domain.exceptions import (
    ConfigurationError,
    PlatformUnavailableError,
    RateLimitedError,
)
from backstage.infrastructure.integrations.spotify_client import SpotifyClient

ALBUMS = {
    "items": [
        {"id": "album-1", "name": "Daybreak", "release_date": "2026-09-12", "release_date_precision": "day"},
        None,
    ]
}


class SpotifyStub:
    """MockTransport handler recording requests; token endpoint + albums endpoint."""

    def __init__(self, albums_status: int = 200, albums_headers: dict[str, str] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.albums_status = albums_status
        self.albums_headers = albums_headers or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "accounts.spotify.com":
            return httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
        if self.albums_status != 200:
            return httpx.Response(self.albums_status, headers=self.albums_headers)
        return httpx.Response(200, json=ALBUMS)

    @property
    def token_requests(self) -> int:
        return sum(1 for r in self.requests if r.url.host == "accounts.spotify.com")


def make_client(stub: SpotifyStub, **settings) -> SpotifyClient:
    spotify_settings = SpotifySettings(
        client_id=settings.get("client_id", "id"),
        client_secret=settings.get("client_secret", "secret"),
        market="DE",
    )
    return SpotifyClient(spotify_settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(stub)))


class TestToken:
    async def test_token_is_cached(self) -> None:
        stub = SpotifyStub()
        client = make_client(stub)

        await client.get_artist_albums("artist-1")
        await client.get_artist_albums("artist-1")

        assert stub.token_requests == 1
        token_request = stub.requests[0]
        assert token_request.headers["Authorization"].startswith("Basic ")
        assert b"grant_type=client_credentials" in token_request.content

    async def test_missing_credentials(self) -> None:
        client = make_client(SpotifyStub(), client_id="", client_secret="")

        with pytest.raises(ConfigurationError):
            await client.get_access_token()

    async def test_rejected_token_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_client"})

        client = SpotifyClient(
            SpotifySettings(client_id="id", client_secret="bad"),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(PlatformUnavailableError, match="token request rejected"):
            await client.get_access_token()


class TestArtistAlbums:
    async def test_request_parameters(self) -> None:
        stub = SpotifyStub()

        albums = await make_client(stub).get_artist_albums("artist-1", limit=500)

        request = stub.requests[-1]
        assert request.url.path == "/v1/artists/artist-1/albums"
        assert request.url.params["include_groups"] == "album,single"
        assert request.url.params["market"] == "DE"
        assert request.url.params["limit"] == "50"
        assert request.headers["Authorization"] == "Bearer app-token"
        assert [album["id"] for album in albums] == ["album-1"]

    async def test_unauthorized_drops_token(self) -> None:
        stub = SpotifyStub(albums_status=401)
        client = make_client(stub)

        with pytest.raises(PlatformUnavailableError) as exc_info:
            await client.get_artist_albums("artist-1")

        assert exc_info.value.status_code == 401
        assert client._access_token is None

    async def test_throttled(self) -> None:
        stub = SpotifyStub(albums_status=429, albums_headers={"Retry-After": "7"})

        with pytest.raises(RateLimitedError) as exc_info:
            await make_client(stub).get_artist_albums("artist-1")

        assert exc_info.value.retry_after == 7

    async def test_server_error(self) -> None:
        stub = SpotifyStub(albums_status=502)

        with pytest.raises(PlatformUnavailableError, match="returned 502"):
            await make_client(stub).get_artist_albums("artist-1")
