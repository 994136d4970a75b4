"""Domain events for the Coupon aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Coupon")
class CouponCreated:
    """A new discount code was issued."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    coupon_type = String(required=True)
    value = Float(required=True)
    expires_at = DateTime()


@checkout.event(part_of="Coupon")
class CouponRedeemed:
    """A completed checkout used the coupon."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    cart_id = Identifier(required=True)
    used_count = Integer(required=True)


@checkout.event(part_of="Coupon")
class CouponDeactivated:
    """The coupon was switched off and can no longer be applied."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
