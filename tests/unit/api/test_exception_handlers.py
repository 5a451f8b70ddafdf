"""Tests for mapping domain exceptions to HTTP responses."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from backstage.api.exception_handlers import register_exception_handlers
from backstage.domain.exceptions import (
    AudienceResolutionError,
    AuthenticationError,
    ConfigurationError,
    DomainException,
    PlatformUnavailableError,
    RateLimitedError,
    ValidationError,
)


def client_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom() -> None:
        raise exc

    @app.get("/items/{item_id}")
    async def item(item_id: int) -> dict[str, int]:
        return {"id": item_id}

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("exc", "status_code"),
    [
        (ValidationError("bad limit"), 422),
        (ConfigurationError("Cron secret is not configured"), 503),
        (PlatformUnavailableError("spotify", "token request failed"), 502),
        (AudienceResolutionError(7, "db down"), 500),
    ],
)
def test_domain_exception_status(exc: DomainException, status_code: int) -> None:
    response = client_raising(exc).get("/boom")

    assert response.status_code == status_code
    assert response.json() == {"detail": exc.message}


def test_authentication_error_asks_for_bearer() -> None:
    response = client_raising(AuthenticationError("Unauthorized")).get("/boom")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_rate_limited_sets_retry_after() -> None:
    response = client_raising(RateLimitedError("soundcloud", retry_after=30)).get("/boom")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "30"


def test_rate_limited_without_retry_after() -> None:
    response = client_raising(RateLimitedError("soundcloud")).get("/boom")

    assert response.status_code == 429
    assert "Retry-After" not in response.headers


def test_http_exception_keeps_status_and_headers() -> None:
    exc = HTTPException(status_code=503, detail="Database not initialized", headers={"X-Backstage": "1"})

    response = client_raising(exc).get("/boom")

    assert response.status_code == 503
    assert response.json() == {"detail": "Database not initialized"}
    assert response.headers["X-Backstage"] == "1"


def test_request_validation_errors_are_listed() -> None:
    response = client_raising(ValueError("unused")).get("/items/not-a-number")

    assert response.status_code == 422
    [error] = response.json()["detail"]
    assert error["loc"] == ["path", "item_id"]
