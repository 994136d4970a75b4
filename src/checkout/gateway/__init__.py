"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations per provider:
- FakeGateway for development and testing (``gateway_mode = "fake"``)
- RazorpayGateway / PayPalGateway for production (``gateway_mode = "live"``)
"""

from checkout.cart.cart import PaymentGateway as GatewayName
from checkout.config import CheckoutSettings, get_settings
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.paypal_adapter import PayPalGateway
from checkout.gateway.port import PaymentGateway
from checkout.gateway.razorpay_adapter import RazorpayGateway

_current_gateways: dict[str, PaymentGateway] = {}

_LIVE_ADAPTERS = {
    GatewayName.RAZORPAY.value: RazorpayGateway,
    GatewayName.PAYPAL.value: PayPalGateway,
}


def get_gateway(provider: str, settings: CheckoutSettings | None = None) -> PaymentGateway:
    """Return the gateway for a provider ("razorpay" or "paypal")."""
    if provider not in _LIVE_ADAPTERS:
        raise ValueError(f"Unknown payment gateway: {provider}")

    if provider not in _current_gateways:
        settings = settings or get_settings()
        if settings.gateway_mode == "live":
            _current_gateways[provider] = _LIVE_ADAPTERS[provider].from_settings(settings)
        else:
            _current_gateways[provider] = FakeGateway(name=provider)
    return _current_gateways[provider]


def set_gateway(provider: str, gateway: PaymentGateway) -> None:
    """Override the gateway for a provider (useful for tests)."""
    _current_gateways[provider] = gateway


def reset_gateways() -> None:
    """Reset to default gateways."""
    _current_gateways.clear()
