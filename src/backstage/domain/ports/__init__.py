"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod

from backstage.domain.entities import (
    Contact,
    ExecutionRecord,
    NotifiedRelease,
    Platform,
    User,
)
from backstage.domain.ports.notification import (
    EmailMessage,
    EmailResult,
    IEmailProvider,
    INotificationSender,
    ReleaseAnnouncement,
    SendFailure,
    SendResult,
)
from backstage.domain.ports.platform import IPlatformAdapter


# Hey future me, IUserDirectory is a PORT (Hexagonal Architecture)! The orchestrator only
# ever reads users, it never writes them. If list_active_users() raises, the whole run is
# aborted - so implementations should wrap their errors in UserDirectoryError.
class IUserDirectory(ABC):
    """Read-only access to artist accounts."""

    @abstractmethod
    async def list_active_users(self) -> list[User]:
        """Return all active users with their platform links and quota."""
        pass


class ITrackLedger(ABC):
    """Persistent record of which release was announced to which user's audience.

    Hey future me - this is the ONLY thing that keeps two cron invocations from
    emailing the same release twice. Read-your-writes within a run is required.
    """

    @abstractmethod
    async def has_notified(
        self, platform: Platform, external_track_id: str, user_id: int
    ) -> bool:
        """True if this release was already announced for this user."""
        pass

    @abstractmethod
    async def record_notified(
        self,
        platform: Platform,
        external_track_id: str,
        user_id: int,
        sent_count: int,
        title: str | None = None,
    ) -> NotifiedRelease:
        """Create the ledger entry, or add sent_count to an existing one.

        Returns the entry as stored, sent_count being the total so far.
        """
        pass


class IAudienceRepository(ABC):
    """Storage access behind the audience provider (contacts and quota counters)."""

    @abstractmethod
    async def list_subscribed_contacts(
        self, user_id: int, limit: int | None = None
    ) -> list[Contact]:
        """Subscribed contacts of a user in a stable order (oldest first)."""
        pass

    @abstractmethod
    async def get_quota(self, user_id: int) -> tuple[int, int] | None:
        """Current (monthly_quota, emails_sent_this_month), or None if the user is gone."""
        pass

    @abstractmethod
    async def increment_emails_sent(self, user_id: int, count: int) -> None:
        """Atomically add `count` to emails_sent_this_month."""
        pass


class IAudienceProvider(ABC):
    """Resolves who may receive an announcement, under the monthly quota."""

    @abstractmethod
    async def remaining_quota(self, user_id: int) -> int:
        """Emails the user may still send this month, re-read from storage.

        Raises:
            AudienceResolutionError: Quota could not be loaded
        """
        pass

    @abstractmethod
    async def resolve_eligible_contacts(
        self, user_id: int, requested_count: int | None = None
    ) -> list[Contact]:
        """Subscribed contacts, capped at the user's remaining quota.

        Quota is re-read on every call. requested_count=None means "everyone
        the quota allows".

        Raises:
            AudienceResolutionError: Contacts or quota could not be loaded
        """
        pass

    @abstractmethod
    async def record_sent(self, user_id: int, count: int) -> None:
        """Book `count` successfully sent emails against the monthly quota."""
        pass


class IExecutionLedger(ABC):
    """Append-only store of execution records."""

    @abstractmethod
    async def persist(self, record: ExecutionRecord) -> None:
        """Append a record. Raises ExecutionLedgerError on failure."""
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> list[ExecutionRecord]:
        """Most recent records, newest first."""
        pass


__all__ = [
    "IUserDirectory",
    "ITrackLedger",
    "IAudienceRepository",
    "IAudienceProvider",
    "IExecutionLedger",
    "IPlatformAdapter",
    "INotificationSender",
    "IEmailProvider",
    "ReleaseAnnouncement",
    "SendFailure",
    "SendResult",
    "EmailMessage",
    "EmailResult",
]
