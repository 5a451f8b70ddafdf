"""Turn domain exceptions into JSON error responses.

The scheduler only looks at status codes, so each domain exception family maps to one:

    ValidationError         422
    AuthenticationError     401  (+ WWW-Authenticate: Bearer)
    RateLimitExceededError  429  (+ Retry-After when known)
    ExternalServiceError    502
    ConfigurationError      503
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backstage.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    ExternalServiceError,
    RateLimitExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_DOMAIN_STATUS: dict[type[DomainException], tuple[int, int]] = {
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, logging.WARNING),
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, logging.WARNING),
    RateLimitExceededError: (status.HTTP_429_TOO_MANY_REQUESTS, logging.WARNING),
    ExternalServiceError: (status.HTTP_502_BAD_GATEWAY, logging.ERROR),
    ConfigurationError: (status.HTTP_503_SERVICE_UNAVAILABLE, logging.ERROR),
}


def _jsonable(value: Any) -> Any:
    # pydantic puts raw request bytes into "input", which JSONResponse can't encode
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(item) for item in value]
    return value


def _status_for(exc: DomainException) -> tuple[int, int]:
    for exc_type in type(exc).__mro__:
        if exc_type in _DOMAIN_STATUS:
            return _DOMAIN_STATUS[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, logging.ERROR


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code, level = _status_for(exc)
    logger.log(
        level,
        "%s on %s: %s",
        type(exc).__name__,
        request.url.path,
        exc.message,
        extra={"path": request.url.path, "status_code": status_code},
    )

    headers: dict[str, str] = {}
    if isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"
    retry_after = getattr(exc, "retry_after", None)
    if isinstance(exc, RateLimitExceededError) and retry_after is not None:
        headers["Retry-After"] = str(retry_after)

    return JSONResponse(
        status_code=status_code, content={"detail": exc.message}, headers=headers or None
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = _jsonable(list(exc.errors()))
    logger.warning("Invalid request on %s: %s", request.url.path, errors)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": errors}
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "HTTP %d on %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Hey future me, one handler for the whole DomainException tree. Subclasses such as
# RateLimitedError or PlatformUnavailableError resolve through _status_for()'s MRO walk,
# so a new exception only needs a row in _DOMAIN_STATUS if its family is new.
def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers above to the app."""
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)


__all__ = ["register_exception_handlers"]
