"""Mailer registry: pluggable outbound email.

Uses the fake adapter by default; the Resend adapter is selected with
``email_provider = "resend"``.
"""

from checkout.config import CheckoutSettings, get_settings
from checkout.mail.email_port import Mailer

_current_mailer: Mailer | None = None


def get_mailer(settings: CheckoutSettings | None = None) -> Mailer:
    """Return the configured mailer (singleton)."""
    global _current_mailer
    if _current_mailer is None:
        settings = settings or get_settings()
        if settings.email_provider == "resend":
            from checkout.mail.resend_email import ResendMailer

            _current_mailer = ResendMailer.from_settings(settings)
        else:
            from checkout.mail.fake_email import FakeMailer

            _current_mailer = FakeMailer()
    return _current_mailer


def set_mailer(mailer: Mailer) -> None:
    """Override the active mailer (useful for tests)."""
    global _current_mailer
    _current_mailer = mailer


def reset_mailer() -> None:
    """Reset the mailer singleton (useful for testing)."""
    global _current_mailer
    _current_mailer = None
