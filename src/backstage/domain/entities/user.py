"""Artist accounts and their subscribers."""

from dataclasses import dataclass, field

from backstage.domain.entities.release import Platform

# Hey future me - the billing system marks unlimited plans with a huge monthly quota
# instead of NULL. Anything at or above this is treated as "no ceiling".
UNLIMITED_QUOTA = 999_999_999


@dataclass(frozen=True)
class User:
    """Artist account as seen by the release check (read-only)."""

    id: int
    email: str
    name: str | None = None
    active: bool = True
    platform_ids: dict[Platform, str] = field(default_factory=dict)
    monthly_quota: int = 0
    emails_sent_this_month: int = 0
    sender_email: str | None = None

    def external_id(self, platform: Platform) -> str | None:
        """Return the linked account id on a platform, or None if unlinked."""
        value = self.platform_ids.get(platform)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()


@dataclass(frozen=True)
class Contact:
    """A subscribed fan that receives release announcements."""

    id: int
    email: str
    name: str | None = None
    unsubscribe_token: str | None = None
