"""Checkout settings: secrets and endpoints consumed at the service boundary.

Values come from environment variables prefixed with ``CHECKOUT_`` (or a
``.env`` file). The settings object is constructed explicitly and handed to
the lifecycle service and gateway adapters, so tests can inject fake
credentials without touching the process environment.

Provides get_settings() / set_settings() / reset_settings() in the same
style as the gateway and mailer registries.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckoutSettings(BaseSettings):
    """Configuration for the checkout service."""

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Public URLs
    base_url: str = Field(default="http://localhost:3000", description="Storefront base URL for redirects")
    signup_url_base: str = Field(
        default="http://localhost:4000/signup",
        description="External signup page; the signup token is appended as a path segment",
    )

    # Partner (external signup service) authentication
    partner_api_key: str | None = Field(default=None, description="Bearer key for partner endpoints")

    # Signup tokens
    signup_token_secret: str = Field(default="dev-signup-secret", min_length=8)
    signup_token_algorithm: str = Field(default="HS256")
    signup_token_validity_hours: int = Field(default=24, ge=1)

    # Pricing
    catalog_price_tolerance_percent: float = Field(default=1.0, ge=0.0)

    # Payment gateways: "fake" for development/tests, "live" for the real providers
    gateway_mode: str = Field(default="fake", pattern="^(fake|live)$")
    gateway_timeout_seconds: float = Field(default=10.0, gt=0)

    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    razorpay_webhook_secret: str | None = None
    razorpay_api_base: str = "https://api.razorpay.com/v1"

    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    paypal_webhook_id: str | None = None
    paypal_sandbox: bool = True

    # Outbound email: "fake" records messages, "resend" delivers them
    email_provider: str = Field(default="fake", pattern="^(fake|resend)$")
    resend_api_key: str | None = None
    resend_api_base: str = "https://api.resend.com"
    email_from: str = "Checkout <noreply@example.com>"

    @property
    def paypal_api_base(self) -> str:
        if self.paypal_sandbox:
            return "https://api-m.sandbox.paypal.com"
        return "https://api-m.paypal.com"


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = CheckoutSettings()
    return _current_settings


def set_settings(settings: CheckoutSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _current_settings
    _current_settings = None
