"""Release announcement sender.

Hey future me - this is the INotificationSender the release check talks to.
It renders the Jinja2 email once per recipient (unsubscribe link differs), hands each
message to the IEmailProvider and collects per-recipient failures into a SendResult.

Sending is parallel but bounded by send_concurrency, and every single send has its own
timeout. A timeout or provider error for one recipient never touches the others.
should_stop() is checked before each recipient is started, which is how the release
check keeps a large audience inside the run budget.

Usage:
    sender = ReleaseNotificationService(MailgunEmailProvider(settings.mailgun), base_url)
    result = await sender.send(ReleaseAnnouncement(release, "Gee Beat"), contacts)
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from backstage.domain.entities import Contact
from backstage.domain.ports.notification import (
    EmailMessage,
    IEmailProvider,
    INotificationSender,
    ReleaseAnnouncement,
    SendFailure,
    SendResult,
)

logger = logging.getLogger(__name__)

# Resolved relative to this file so it works from the source tree and from site-packages
_TEMPLATES_DIR = Path(__file__).parent.parent.parent / "templates"
NEW_RELEASE_TEMPLATE = "emails/new_release.html"
TIME_BUDGET_REACHED = "time budget reached"


def build_template_environment(templates_dir: Path = _TEMPLATES_DIR) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html"]),
    )


class ReleaseNotificationService(INotificationSender):
    """Fans one release announcement out to a list of contacts."""

    def __init__(
        self,
        email_provider: IEmailProvider,
        base_url: str,
        send_timeout_seconds: float = 10.0,
        send_concurrency: int = 10,
        environment: Environment | None = None,
    ) -> None:
        self._provider = email_provider
        self._base_url = base_url.rstrip("/")
        self._send_timeout = send_timeout_seconds
        self._send_concurrency = max(1, send_concurrency)
        self._env = environment or build_template_environment()

    def unsubscribe_url(self, contact: Contact) -> str | None:
        if not contact.unsubscribe_token:
            return None
        return f"{self._base_url}/unsubscribe?token={contact.unsubscribe_token}"

    def render(self, template: ReleaseAnnouncement, contact: Contact) -> str:
        return self._env.get_template(NEW_RELEASE_TEMPLATE).render(
            release=template.release,
            artist_name=template.artist_name,
            platform_label=template.release.platform.label,
            contact_name=contact.name,
            unsubscribe_url=self.unsubscribe_url(contact),
        )

    def build_message(self, template: ReleaseAnnouncement, contact: Contact) -> EmailMessage:
        from_address = (
            f"{template.artist_name} <{template.sender_email}>"
            if template.sender_email
            else ""
        )
        return EmailMessage(
            to=contact.email,
            subject=template.subject,
            html=self.render(template, contact),
            from_address=from_address,
            unsubscribe_url=self.unsubscribe_url(contact),
            tags={
                "category": "new_track",
                "track_id": template.release.external_track_id,
            },
        )

    async def send(
        self,
        template: ReleaseAnnouncement,
        recipients: list[Contact],
        should_stop: Callable[[], bool] | None = None,
    ) -> SendResult:
        if not recipients:
            return SendResult()

        semaphore = asyncio.Semaphore(self._send_concurrency)
        not_started: list[str] = []

        async def _send_one(contact: Contact) -> SendFailure | None:
            async with semaphore:
                if should_stop is not None and should_stop():
                    not_started.append(contact.email)
                    return SendFailure(contact.email, TIME_BUDGET_REACHED)
                try:
                    message = self.build_message(template, contact)
                    result = await asyncio.wait_for(
                        self._provider.send_email(message), timeout=self._send_timeout
                    )
                except TimeoutError:
                    return SendFailure(
                        contact.email, f"send timed out after {self._send_timeout:.0f}s"
                    )
                except Exception as e:
                    logger.warning(
                        "[NOTIFICATION] Unexpected error sending to %s: %s", contact.email, e
                    )
                    return SendFailure(contact.email, str(e) or type(e).__name__)

            if not result.success:
                return SendFailure(contact.email, result.error or "unknown error")
            return None

        outcomes = await asyncio.gather(*(_send_one(contact) for contact in recipients))
        failures = tuple(outcome for outcome in outcomes if outcome is not None)
        sent = len(recipients) - len(failures)

        logger.info(
            "[NOTIFICATION] %s '%s': %d sent, %d failed, %d not started",
            template.release.platform.label,
            template.release.title,
            sent,
            len(failures),
            len(not_started),
        )
        return SendResult(
            sent=sent, failed=len(failures), failures=failures, not_started=len(not_started)
        )


__all__ = ["TIME_BUDGET_REACHED", "ReleaseNotificationService", "build_template_environment"]
