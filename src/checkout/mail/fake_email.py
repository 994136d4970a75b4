"""In-memory mailer for development and tests.

Keeps every welcome email it accepted, so tests can follow the signup link
that a buyer would have received.
"""

from uuid import uuid4

from checkout.mail.email_port import MailDelivery, Mailer, WelcomeEmail

DEFAULT_FAILURE = "Email delivery failed"


class FakeMailer(Mailer):
    def __init__(self):
        self.sent: list[WelcomeEmail] = []
        self.should_fail = False
        self.failure_reason = DEFAULT_FAILURE
        self._failures_pending = 0

    def fail_next(self, reason: str = DEFAULT_FAILURE, times: int = 1) -> None:
        """Reject the next ``times`` deliveries, then recover."""
        self.failure_reason = reason
        self._failures_pending = times

    def fail_always(self, reason: str = DEFAULT_FAILURE) -> None:
        self.failure_reason = reason
        self.should_fail = True

    def send_welcome(self, email: WelcomeEmail) -> MailDelivery:
        delivery = super().send_welcome(email)
        if delivery.sent:
            self.sent.append(email)
        return delivery

    def deliver(self, to: str, subject: str, body: str, html_body: str | None = None) -> MailDelivery:
        if self.should_fail:
            return MailDelivery(sent=False, error=self.failure_reason)
        if self._failures_pending:
            self._failures_pending -= 1
            return MailDelivery(sent=False, error=self.failure_reason)
        return MailDelivery(sent=True, message_id=f"fake-mail-{uuid4().hex[:12]}")

    def signup_links(self) -> list[str]:
        return [email.signup_url for email in self.sent]
