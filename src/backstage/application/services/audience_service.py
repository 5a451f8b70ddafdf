"""Audience resolution under the monthly email quota."""

import logging

from backstage.domain.entities import UNLIMITED_QUOTA, Contact
from backstage.domain.exceptions import AudienceResolutionError
from backstage.domain.ports import IAudienceProvider, IAudienceRepository

logger = logging.getLogger(__name__)


class AudienceService(IAudienceProvider):
    """Resolves eligible contacts for a user, capped at the remaining quota.

    Hey future me - quota is RE-READ on every call. The release check books sent emails
    between two releases of the same user, so a cached value would let the second release
    overspend. The caller (release check) serialises calls per user.
    """

    def __init__(self, repository: IAudienceRepository) -> None:
        self._repo = repository

    async def remaining_quota(self, user_id: int) -> int:
        try:
            quota = await self._repo.get_quota(user_id)
        except Exception as e:
            raise AudienceResolutionError(user_id, f"quota lookup failed: {e}") from e
        if quota is None:
            raise AudienceResolutionError(user_id, "user not found")

        monthly_quota, sent = quota
        if monthly_quota >= UNLIMITED_QUOTA:
            return UNLIMITED_QUOTA
        return max(0, monthly_quota - sent)

    async def resolve_eligible_contacts(
        self, user_id: int, requested_count: int | None = None
    ) -> list[Contact]:
        remaining = await self.remaining_quota(user_id)
        cap = remaining if requested_count is None else min(remaining, requested_count)
        if cap <= 0:
            return []

        # Unlimited plans don't need a LIMIT clause at all
        limit = None if cap >= UNLIMITED_QUOTA else cap
        try:
            contacts = await self._repo.list_subscribed_contacts(user_id, limit=limit)
        except Exception as e:
            raise AudienceResolutionError(user_id, f"contact lookup failed: {e}") from e

        logger.debug(
            "Audience for user %s: %d contacts (remaining quota %s)",
            user_id,
            len(contacts),
            "unlimited" if remaining >= UNLIMITED_QUOTA else remaining,
        )
        return contacts

    async def record_sent(self, user_id: int, count: int) -> None:
        await self._repo.increment_emails_sent(user_id, count)


__all__ = ["AudienceService"]
