"""Mailgun email provider.

Hey future me - this talks to the Mailgun HTTP API directly with httpx, no SDK:

    POST {api_url}/v3/{domain}/messages   (basic auth "api":<key>, form-encoded)

Multi-tenant sending: artists with a verified sender domain send FROM their own domain.
We extract the domain from the `from` address ("Artist <info@geebeat.com>" -> geebeat.com)
and fall back to the configured default domain if that fails.

Every failure ends up in EmailResult.error. This provider never raises for a single
recipient - a batch of 500 must not die because address #17 bounced at the API.
"""

import logging
import re

import httpx

from backstage.config.settings import MailgunSettings
from backstage.domain.ports.notification import EmailMessage, EmailResult, IEmailProvider
from backstage.infrastructure.integrations.http_pool import HttpClientPool
from backstage.infrastructure.rate_limiter import get_mailgun_limiter

logger = logging.getLogger(__name__)

_ANGLE_ADDRESS = re.compile(r"<(.+?)>")


class MailgunEmailProvider(IEmailProvider):
    """IEmailProvider over the Mailgun messages API."""

    def __init__(
        self,
        settings: MailgunSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._client = http_client

    @property
    def name(self) -> str:
        return "mailgun"

    def is_configured(self) -> bool:
        return self.settings.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = await HttpClientPool.get_client()
        return self._client

    @property
    def default_from(self) -> str:
        return f"{self.settings.default_sender_name} <noreply@{self.settings.domain}>"

    def extract_domain(self, from_address: str) -> str:
        """Sending domain of a from address, or the default domain if it looks invalid."""
        match = _ANGLE_ADDRESS.search(from_address)
        email = match.group(1) if match else from_address
        _, at, domain = email.rpartition("@")
        domain = domain.strip()

        if not at or "." not in domain:
            logger.warning(
                "Invalid from address %r, using default domain %s",
                from_address,
                self.settings.domain,
            )
            return self.settings.domain
        return domain

    def build_form_data(self, message: EmailMessage) -> dict[str, str | list[str]]:
        """Translate an EmailMessage into Mailgun form fields."""
        data: dict[str, str | list[str]] = {
            "from": message.from_address or self.default_from,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.unsubscribe_url:
            data["h:List-Unsubscribe"] = f"<{message.unsubscribe_url}>"
            data["h:List-Unsubscribe-Post"] = "List-Unsubscribe=One-Click"
        if message.tags:
            data["o:tag"] = [f"{name}:{value}" for name, value in message.tags.items()]
        return data

    async def send_email(self, message: EmailMessage) -> EmailResult:
        if not self.is_configured():
            return EmailResult(success=False, error="Mailgun provider not configured")

        data = self.build_form_data(message)
        domain = self.extract_domain(str(data["from"]))
        url = f"{self.settings.api_url.rstrip('/')}/v3/{domain}/messages"

        try:
            client = await self._get_client()
            async with get_mailgun_limiter():
                response = await client.post(
                    url, data=data, auth=("api", self.settings.api_key)
                )
        except httpx.HTTPError as e:
            logger.error("[MAILGUN] Request failed for %s: %s", message.to, e)
            return EmailResult(success=False, error=f"request failed: {e}")

        if response.status_code >= 400:
            # Mailgun puts the reason in {"message": "..."}; fall back to the raw body
            try:
                reason = response.json().get("message", response.text)
            except ValueError:
                reason = response.text
            logger.warning(
                "[MAILGUN] Rejected %s (%d): %s", message.to, response.status_code, reason
            )
            return EmailResult(
                success=False, error=f"mailgun {response.status_code}: {reason}"
            )

        # Accepted is accepted, even when the body is not the usual {"id": ...} JSON
        try:
            message_id = response.json().get("id")
        except (ValueError, AttributeError):
            message_id = None
        logger.debug("[MAILGUN] Sent to %s via %s (id=%s)", message.to, domain, message_id)
        return EmailResult(success=True, message_id=message_id)


__all__ = ["MailgunEmailProvider"]
