"""Checkout API package."""

from checkout.api.errors import register_checkout_exception_handlers
from checkout.api.routes import (
    cart_router,
    coupon_router,
    payment_router,
    plan_router,
    signup_router,
    webhook_router,
)

__all__ = [
    "cart_router",
    "signup_router",
    "payment_router",
    "webhook_router",
    "coupon_router",
    "plan_router",
    "register_checkout_exception_handlers",
]
