"""Tests for the token bucket rate limiter."""

import time

import pytest

from backstage.infrastructure.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    get_limiter,
    get_spotify_limiter,
)


class TestRateLimiter:
    async def test_acquire_takes_a_token(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(max_tokens=3, refill_rate=0.001))

        await limiter.acquire()
        await limiter.acquire()

        assert 0.9 < limiter.available_tokens < 1.1

    def test_penalize_blocks_without_sleeping(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(initial_backoff_seconds=1.0, max_backoff_seconds=8.0))

        started = time.monotonic()
        first = limiter.penalize()
        second = limiter.penalize()

        assert time.monotonic() - started < 0.5
        assert first == 1.0
        assert second == 2.0
        assert limiter.current_backoff == 4.0
        assert limiter.available_tokens < 1.0

    def test_retry_after_is_capped(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(max_backoff_seconds=5.0))

        assert limiter.penalize(retry_after=120) == 5.0

    async def test_successful_request_resets_backoff(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(initial_backoff_seconds=0.01, max_backoff_seconds=0.02))
        limiter.penalize()

        async with limiter:
            pass

        assert limiter.current_backoff == 0.01

    def test_singletons(self) -> None:
        assert get_spotify_limiter() is get_spotify_limiter()
        assert get_spotify_limiter().name == "spotify"

    def test_services_get_their_own_bucket(self) -> None:
        soundcloud = get_limiter("soundcloud")

        assert soundcloud is not get_spotify_limiter()
        assert soundcloud.config.max_tokens == 15

    def test_unknown_service(self) -> None:
        with pytest.raises(KeyError):
            get_limiter("bandcamp")
