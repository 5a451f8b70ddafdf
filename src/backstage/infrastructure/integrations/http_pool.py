"""One shared httpx.AsyncClient for every outbound integration.

Hey future me - SoundCloud feeds, the Spotify Web API and Mailgun all go through the
client returned by HttpClientPool.get_client(), unless a test hands its own client (with
an httpx.MockTransport) straight to the adapter. A cron run touches one feed per linked
user, so keep-alive across them is the whole point.

lifespan() calls configure() before the first request and close() at shutdown.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolLimits:
    """Connection settings applied when the shared client is built."""

    timeout_seconds: float = 15.0
    max_connections: int = 50
    max_keepalive: int = 20
    user_agent: str = "backstage-release-check"


class HttpClientPool:
    """Process-wide lazily built AsyncClient."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None
    _limits: ClassVar[PoolLimits] = PoolLimits()

    @classmethod
    def configure(cls, limits: PoolLimits) -> None:
        """Set limits for the next client build. No effect on an existing client."""
        if cls._client is not None:
            logger.warning("HTTP client already built, new pool limits apply after close()")
        cls._limits = limits

    @classmethod
    async def get_client(cls) -> httpx.AsyncClient:
        # The lock is created lazily, it must belong to the running loop
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        async with cls._lock:
            if cls._client is None:
                cls._client = cls._build(cls._limits)
            return cls._client

    @staticmethod
    def _build(limits: PoolLimits) -> httpx.AsyncClient:
        logger.info(
            "Building shared HTTP client (timeout=%.1fs, max_connections=%d)",
            limits.timeout_seconds,
            limits.max_connections,
        )
        return httpx.AsyncClient(
            timeout=httpx.Timeout(limits.timeout_seconds),
            limits=httpx.Limits(
                max_connections=limits.max_connections,
                max_keepalive_connections=limits.max_keepalive,
            ),
            headers={"User-Agent": limits.user_agent},
            http2=True,
            follow_redirects=True,
        )

    @classmethod
    async def close(cls) -> None:
        """Close the shared client; the next get_client() builds a fresh one."""
        client, cls._client = cls._client, None
        if client is not None:
            await client.aclose()
            logger.info("Shared HTTP client closed")
        cls._lock = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None


__all__ = ["HttpClientPool", "PoolLimits"]
