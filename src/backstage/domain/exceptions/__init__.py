"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can inspect it without
    # parsing str(exception). Don't raise this directly - use a subclass so callers can
    # catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    HTTP Status: 422
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("CRON_SECRET is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """Caller is not authenticated.

    HTTP Status: 401
    """

    pass


class ExternalServiceError(DomainException):
    """External service (SoundCloud, Spotify, Mailgun) returned an error.

    HTTP Status: 502 (Bad Gateway)
    """

    pass


class RateLimitExceededError(DomainException):
    """External service rate limit was exceeded.

    HTTP Status: 429
    """

    pass


# =============================================================================
# Release check exceptions
# Hey future me - everything below PlatformUnavailableError/RateLimitedError/
# AudienceResolutionError is caught at the (user, platform) boundary by the
# release check. Only UserDirectoryError aborts a run.
# =============================================================================


class PlatformUnavailableError(ExternalServiceError):
    """A music platform could not be reached or rejected our credentials."""

    def __init__(self, platform: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"{platform} unavailable: {reason}")
        self.platform = platform
        self.reason = reason
        self.status_code = status_code


class RateLimitedError(RateLimitExceededError):
    """A music platform throttled us (HTTP 429)."""

    def __init__(self, platform: str, retry_after: int | None = None) -> None:
        wait = f"{retry_after}s" if retry_after is not None else "not provided"
        super().__init__(f"{platform} rate limited (Retry-After: {wait})")
        self.platform = platform
        self.retry_after = retry_after


class AudienceResolutionError(DomainException):
    """Subscribed contacts or quota for a user could not be loaded."""

    def __init__(self, user_id: int, reason: str) -> None:
        super().__init__(f"Audience for user {user_id} could not be resolved: {reason}")
        self.user_id = user_id
        self.reason = reason


class UserDirectoryError(DomainException):
    """Active users could not be enumerated. Fatal for a release check run."""

    pass


class ExecutionLedgerError(DomainException):
    """An execution record could not be persisted."""

    pass


__all__ = [
    "DomainException",
    "ValidationError",
    "ConfigurationError",
    "AuthenticationError",
    "ExternalServiceError",
    "RateLimitExceededError",
    "PlatformUnavailableError",
    "RateLimitedError",
    "AudienceResolutionError",
    "UserDirectoryError",
    "ExecutionLedgerError",
]
