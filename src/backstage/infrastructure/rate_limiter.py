"""
Centralized rate limiter for outbound API calls.

Hey future me - one token bucket per external service, shared by every request the
release check makes. SoundCloud feeds, the Spotify Web API and Mailgun all throttle
us if a cron run fans out too fast.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate per second
- Every request takes one token
- Empty bucket: wait until a token is back

On 429 we do NOT sleep here. A release check run is time-boxed, so the adapter raises
RateLimitedError and the unit ends. penalize() just drains the bucket and pushes the
next acquire() out by the backoff so the other units hitting the same service slow down.

USAGE:
    limiter = get_spotify_limiter()

    async with limiter:
        response = await client.get(url)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for a rate limiter.

    Hey future me - max_backoff_seconds caps how long penalize() may block the
    bucket. Keep it well below the run time budget or a single 429 freezes the
    rest of the run for that service.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second
    max_backoff_seconds: float = 30.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket rate limiter with adaptive backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _blocked_until: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            self.config.max_tokens, self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, waiting if the bucket is empty or blocked."""
        async with self._lock:
            blocked_for = self._blocked_until - time.monotonic()
            if blocked_for > 0:
                logger.debug(
                    "RateLimiter[%s]: blocked after 429, waiting %.2fs",
                    self.name,
                    blocked_for,
                )
                await asyncio.sleep(blocked_for)
                self._last_refill = time.monotonic()

            self._refill_tokens()
            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    "RateLimiter[%s]: no tokens available, waiting %.2fs",
                    self.name,
                    wait_time,
                )
                await asyncio.sleep(wait_time)
                self._refill_tokens()

            self._tokens -= 1.0

    def penalize(self, retry_after: int | None = None) -> float:
        """Record a 429. Drains the bucket and blocks it for the backoff period.

        Returns:
            Seconds the bucket is blocked for
        """
        wait_time = float(retry_after) if retry_after is not None else self._current_backoff
        wait_time = min(wait_time, self.config.max_backoff_seconds)

        logger.warning(
            "RateLimiter[%s]: 429 rate limited, blocking for %.1fs (backoff level %.1fs)",
            self.name,
            wait_time,
            self._current_backoff,
        )

        self._current_backoff = min(
            self._current_backoff * self.config.backoff_multiplier,
            self.config.max_backoff_seconds,
        )
        self._tokens = 0.0
        self._blocked_until = time.monotonic() + wait_time
        return wait_time

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens

    @property
    def current_backoff(self) -> float:
        return self._current_backoff


# Hey future me - one limiter per service, shared by every request of the process.
# Spotify allows roughly 180 requests/minute, 2 req/sec with a burst of 10 stays clear.
# SoundCloud RSS feeds sit behind their CDN and take more. Mailgun fan-out is bounded by
# send_concurrency anyway, so its bucket mostly absorbs bursts.
_PRESETS: dict[str, RateLimiterConfig] = {
    "spotify": RateLimiterConfig(max_tokens=10, refill_rate=2.0),
    "soundcloud": RateLimiterConfig(max_tokens=15, refill_rate=5.0, initial_backoff_seconds=0.5),
    "mailgun": RateLimiterConfig(max_tokens=50, refill_rate=25.0),
}

_limiters: dict[str, RateLimiter] = {}


def get_limiter(service: str) -> RateLimiter:
    """Shared limiter for "spotify", "soundcloud" or "mailgun"."""
    limiter = _limiters.get(service)
    if limiter is None:
        if service not in _PRESETS:
            raise KeyError(f"No rate limit preset for {service!r}")
        limiter = _limiters[service] = RateLimiter(config=_PRESETS[service], name=service)
    return limiter


def get_spotify_limiter() -> RateLimiter:
    return get_limiter("spotify")


def get_soundcloud_limiter() -> RateLimiter:
    return get_limiter("soundcloud")


def get_mailgun_limiter() -> RateLimiter:
    return get_limiter("mailgun")


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "get_limiter",
    "get_mailgun_limiter",
    "get_soundcloud_limiter",
    "get_spotify_limiter",
]
