"""Resend email adapter: delivers mail through the Resend HTTP API.

Delivery failures come back as an unsent ``MailDelivery`` rather than an
exception.
"""

import httpx
import structlog

from checkout.config import CheckoutSettings
from checkout.mail.email_port import MailDelivery, Mailer

logger = structlog.get_logger(__name__)


class ResendMailer(Mailer):
    def __init__(
        self,
        api_key: str | None,
        sender: str,
        api_base: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: CheckoutSettings, transport: httpx.BaseTransport | None = None):
        return cls(
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            api_base=settings.resend_api_base,
            transport=transport,
        )

    def deliver(self, to: str, subject: str, body: str, html_body: str | None = None) -> MailDelivery:
        if not self.api_key:
            return MailDelivery(sent=False, error="Resend API key not configured")

        payload = {"from": self.sender, "to": [to], "subject": subject, "text": body}
        if html_body:
            payload["html"] = html_body

        try:
            with httpx.Client(base_url=self.api_base, timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    "/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error("resend_send_failed", to=to, error=str(exc))
            return MailDelivery(sent=False, error=str(exc))

        return MailDelivery(sent=True, message_id=data.get("id"))
