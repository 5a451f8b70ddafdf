"""Notification interfaces for release announcements.

Hey future me - two layers here, don't mix them up:
- INotificationSender: what the release check talks to. Takes a template and a
  batch of recipients, returns a SendResult. Never raises for per-recipient
  failures, those go into SendResult.failures.
- IEmailProvider: one transport (Mailgun today). Sends exactly one message.

Architecture:
- ReleaseCheckService → INotificationSender (Port)
- ReleaseNotificationService → IEmailProvider (Port) → MailgunEmailProvider
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from backstage.domain.entities import Contact, Release


@dataclass(frozen=True)
class ReleaseAnnouncement:
    """Template payload for one "new release" email.

    Hey future me - this is provider-agnostic. Per-recipient bits (unsubscribe
    link, greeting) are filled in by the sender, not here.
    """

    release: Release
    artist_name: str
    sender_email: str | None = None

    @property
    def subject(self) -> str:
        return f"🎵 New Release: {self.release.title}"


@dataclass(frozen=True)
class SendFailure:
    """One recipient that did not get the email."""

    recipient: str
    reason: str


@dataclass(frozen=True)
class SendResult:
    """Outcome of sending one announcement to a batch of recipients."""

    sent: int = 0
    failed: int = 0
    failures: tuple[SendFailure, ...] = field(default_factory=tuple)
    # Recipients never attempted because the caller asked to stop (already in failed)
    not_started: int = 0

    @property
    def stopped_early(self) -> bool:
        return self.not_started > 0

    @property
    def attempted(self) -> int:
        return self.sent + self.failed


@dataclass(frozen=True)
class EmailMessage:
    """A fully rendered email ready for a transport."""

    to: str
    subject: str
    html: str
    from_address: str
    unsubscribe_url: str | None = None
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailResult:
    """Result of handing one message to the transport."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class INotificationSender(ABC):
    """Sends a release announcement to a list of contacts."""

    @abstractmethod
    async def send(
        self,
        template: ReleaseAnnouncement,
        recipients: list[Contact],
        should_stop: Callable[[], bool] | None = None,
    ) -> SendResult:
        """Send the announcement to every recipient.

        Partial failures are reported in the result, never raised. Once should_stop()
        returns True no further recipient is started; those count as failed and as
        not_started. Sends already in flight are allowed to finish.
        """
        pass


class IEmailProvider(ABC):
    """Interface for email transports."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this provider (e.g. 'mailgun')."""
        pass

    @abstractmethod
    async def send_email(self, message: EmailMessage) -> EmailResult:
        """Send a single email. Transport errors end up in EmailResult.error."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """True if credentials are present."""
        pass


__all__ = [
    "ReleaseAnnouncement",
    "SendFailure",
    "SendResult",
    "EmailMessage",
    "EmailResult",
    "INotificationSender",
    "IEmailProvider",
]
