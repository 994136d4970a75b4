"""Coupon evaluation: validity checks and discount computation.

``apply`` returns the raw discount. Rounding to the currency's minor unit
happens once, when the cart's payable total is computed via
``total_after_discount``; discounts are never rounded on their own.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.utils.globals import current_domain

from checkout.coupon.coupon import (
    INVALID_CODE,
    MINIMUM_NOT_MET,
    Coupon,
    CouponType,
)
from checkout.shared.billing import round_minor, to_decimal


@dataclass(frozen=True)
class CouponValidation:
    """Outcome of validating a coupon code."""

    valid: bool
    coupon: Coupon | None = None
    reason: str | None = None


class CouponEvaluator:
    def validate(self, code: str, base_amount: float | None = None, at: datetime | None = None) -> CouponValidation:
        """Check a code in priority order: unknown, not active/expired, usage limit, minimum amount."""
        coupon = current_domain.repository_for(Coupon).find_by_code(code) if code else None
        if coupon is None:
            return CouponValidation(valid=False, reason=INVALID_CODE)

        reason = coupon.unusable_reason(at)
        if reason is not None:
            return CouponValidation(valid=False, coupon=coupon, reason=reason)

        if base_amount is not None and coupon.min_order_amount and base_amount < coupon.min_order_amount:
            return CouponValidation(valid=False, coupon=coupon, reason=MINIMUM_NOT_MET)

        return CouponValidation(valid=True, coupon=coupon)

    @staticmethod
    def apply(coupon: Coupon, base_amount: float) -> float:
        """Discount for ``base_amount``; never more than the amount itself."""
        base = to_decimal(base_amount)
        if base <= 0:
            return 0.0

        if CouponType(coupon.coupon_type) == CouponType.PERCENTAGE:
            discount = base * to_decimal(coupon.value) / Decimal(100)
            if coupon.max_discount is not None:
                discount = min(discount, to_decimal(coupon.max_discount))
        else:
            discount = min(to_decimal(coupon.value), base)

        return float(max(discount, Decimal(0)))

    @staticmethod
    def total_after_discount(base_amount: float, discount_amount: float | None, currency: str) -> float:
        """Payable total, rounded half-up to the currency's minor unit."""
        discount = to_decimal(discount_amount or 0)
        return round_minor(max(to_decimal(base_amount) - discount, Decimal(0)), currency)
