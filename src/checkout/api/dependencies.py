"""FastAPI dependencies: settings-backed services and partner authentication."""

import hmac

from fastapi import Depends, Header, Request

from checkout.cart.lifecycle import CartLifecycleService
from checkout.config import CheckoutSettings, get_settings
from checkout.domain import logger
from checkout.exceptions import AuthenticationError, ConfigurationError
from checkout.gateway.results import GatewayResultAdapter


async def read_raw_body(request: Request) -> bytes:
    """Webhook signatures cover the exact bytes received."""
    return await request.body()


def get_checkout_settings() -> CheckoutSettings:
    return get_settings()


def get_lifecycle_service(settings: CheckoutSettings = Depends(get_checkout_settings)) -> CartLifecycleService:
    return CartLifecycleService(settings)


def get_result_adapter(
    service: CartLifecycleService = Depends(get_lifecycle_service),
    settings: CheckoutSettings = Depends(get_checkout_settings),
) -> GatewayResultAdapter:
    return GatewayResultAdapter(service, settings)


def require_partner_key(
    authorization: str | None = Header(None),
    settings: CheckoutSettings = Depends(get_checkout_settings),
) -> None:
    """Bearer-key check for endpoints the external signup service calls."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError(
            "Missing or invalid authorization header",
            detail="Authorization Bearer token is required",
        )

    if not settings.partner_api_key:
        logger.error("partner_key_not_configured")
        raise ConfigurationError("Server configuration error", detail="Partner API key not configured")

    provided = authorization.removeprefix("Bearer ")
    if not hmac.compare_digest(provided.encode("utf-8"), settings.partner_api_key.encode("utf-8")):
        logger.warning("partner_key_rejected", security=True)
        raise AuthenticationError("Invalid API key", detail="Unauthorized access")
