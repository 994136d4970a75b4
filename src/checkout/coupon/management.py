"""Coupon management: commands and handler.

Handles issuing, deactivating, and redeeming discount codes.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from checkout.coupon.coupon import Coupon, CouponType
from checkout.domain import checkout, logger


@checkout.command(part_of="Coupon")
class CreateCoupon:
    """Issue a new discount code."""

    code = String(required=True, max_length=50)
    coupon_type = String(max_length=20, default=CouponType.PERCENTAGE.value)
    value = Float(required=True, min_value=0.0)
    max_discount = Float(min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    start_date = DateTime()
    expires_at = DateTime()
    usage_limit = Integer(min_value=1)
    description = String(max_length=500)
    affiliate = String(max_length=255)


@checkout.command(part_of="Coupon")
class DeactivateCoupon:
    """Switch a coupon off."""

    code = String(required=True, max_length=50)


@checkout.command(part_of="Coupon")
class RedeemCoupon:
    """Count one use of a coupon by a completed cart."""

    code = String(required=True, max_length=50)
    cart_id = Identifier(required=True)


@checkout.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon {command.code.upper()} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            value=command.value,
            coupon_type=command.coupon_type or CouponType.PERCENTAGE.value,
            max_discount=command.max_discount,
            min_order_amount=command.min_order_amount,
            start_date=command.start_date,
            expires_at=command.expires_at,
            usage_limit=command.usage_limit,
            description=command.description,
            affiliate=command.affiliate,
        )
        repo.add(coupon)
        return str(coupon.id)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.find_by_code(command.code)
        if coupon is None:
            raise ObjectNotFoundError(f"Coupon {command.code} does not exist")

        coupon.deactivate()
        repo.add(coupon)

    @handle(RedeemCoupon)
    def redeem_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.find_by_code(command.code)
        if coupon is None:
            logger.warning("coupon_redemption_skipped", code=command.code, cart_id=command.cart_id)
            return None

        coupon.record_redemption(cart_id=str(command.cart_id))
        repo.add(coupon)
        return coupon.used_count
