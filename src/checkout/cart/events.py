"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from checkout.domain import checkout


@checkout.event(part_of="Cart")
class CartCreated:
    """A checkout attempt started for a plan."""

    __version__ = 1

    cart_id = Identifier(required=True)
    payment_id = String(required=True)
    email = String(required=True)
    plan = String(required=True)
    billing_cycle = String(required=True)
    gateway = String(required=True)
    plan_amount = Float(required=True)
    total_amount = Float(required=True)
    currency = String(required=True)
    coupon_code = String()
    created_at = DateTime(required=True)


@checkout.event(part_of="Cart")
class GatewayOrderAttached:
    """The payment gateway issued an order for the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    gateway = String(required=True)
    gateway_order_id = String(required=True)


@checkout.event(part_of="Cart")
class CartPaymentCompleted:
    """Payment was captured; the subscription is active and a signup token exists."""

    __version__ = 1

    cart_id = Identifier(required=True)
    transaction_id = String()
    payment_method = String()
    total_amount = Float(required=True)
    currency = String(required=True)
    start_date = DateTime(required=True)
    end_date = DateTime()
    token_expiry = DateTime(required=True)


@checkout.event(part_of="Cart")
class CartPaymentFailed:
    """The gateway reported a failed or denied payment."""

    __version__ = 1

    cart_id = Identifier(required=True)
    transaction_id = String()
    payment_method = String()


@checkout.event(part_of="Cart")
class CartPaymentCancelled:
    """The payment was cancelled or reversed before completion."""

    __version__ = 1

    cart_id = Identifier(required=True)
    transaction_id = String()


@checkout.event(part_of="Cart")
class CartResumed:
    """A failed or cancelled cart was reopened for another payment attempt."""

    __version__ = 1

    cart_id = Identifier(required=True)
    previous_status = String(required=True)


@checkout.event(part_of="Cart")
class SignupCompleted:
    """The external signup flow consumed the cart's signup token."""

    __version__ = 1

    cart_id = Identifier(required=True)
    email = String(required=True)
    plan = String(required=True)
    completed_at = DateTime(required=True)
