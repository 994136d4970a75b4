"""Outbound mail for the signup handoff.

Checkout sends exactly one kind of message: the welcome email that carries
the buyer's signup link. ``Mailer.send_welcome`` renders it and hands the
rendered content to the adapter's ``deliver``. Adapters report failures in
the returned ``MailDelivery`` instead of raising, because the cart change
that triggered the email is already committed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from checkout.mail.templates import SignupWelcomeTemplate


@dataclass(frozen=True)
class WelcomeEmail:
    to: str
    name: str
    plan: str
    signup_url: str
    expires_at: datetime | None = None
    plan_display_name: str | None = None
    amount: float | None = None
    currency: str | None = None

    def render(self) -> dict:
        return SignupWelcomeTemplate.render(
            {
                "name": self.name,
                "plan": self.plan,
                "plan_display_name": self.plan_display_name,
                "signup_url": self.signup_url,
                "expires_at": self.expires_at.isoformat() if self.expires_at else "",
                "amount": self.amount,
                "currency": self.currency or "",
            }
        )


@dataclass(frozen=True)
class MailDelivery:
    sent: bool
    message_id: str | None = None
    error: str | None = None


class Mailer(ABC):
    def send_welcome(self, email: WelcomeEmail) -> MailDelivery:
        content = email.render()
        return self.deliver(
            to=email.to,
            subject=content["subject"],
            body=content["body"],
            html_body=content.get("html_body"),
        )

    @abstractmethod
    def deliver(self, to: str, subject: str, body: str, html_body: str | None = None) -> MailDelivery:
        """Hand one rendered message to the provider."""
