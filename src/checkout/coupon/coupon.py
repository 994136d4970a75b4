"""Coupon aggregate: discount codes applied at checkout.

A coupon is usable iff it is active, the current time falls inside its
validity window, and its usage limit (if any) has not been reached. Codes
are case-insensitive and stored upper-case.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from checkout.coupon.events import CouponCreated, CouponDeactivated, CouponRedeemed
from checkout.domain import checkout
from checkout.shared.billing import as_utc

# Reasons reported by validation, highest priority first
INVALID_CODE = "invalid code"
NOT_ACTIVE = "expired/not active"
USAGE_LIMIT_REACHED = "usage limit reached"
MINIMUM_NOT_MET = "minimum order amount not met"


class CouponType(Enum):
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@checkout.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=500)
    coupon_type = String(choices=CouponType, default=CouponType.PERCENTAGE.value)
    value = Float(required=True, min_value=0.0)
    max_discount = Float(min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    start_date = DateTime()
    expires_at = DateTime()
    usage_limit = Integer(min_value=1)
    used_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    affiliate = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.coupon_type == CouponType.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage coupons cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.start_date and self.expires_at and as_utc(self.start_date) >= as_utc(self.expires_at):
            raise ValidationError({"expires_at": ["Expiry must be after the start date"]})

    @invariant.post
    def code_must_be_upper_case(self):
        if self.code and self.code != normalize_code(self.code):
            raise ValidationError({"code": ["Coupon codes are stored upper-case without surrounding spaces"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code: str,
        value: float,
        coupon_type: str = CouponType.PERCENTAGE.value,
        max_discount: float | None = None,
        min_order_amount: float | None = None,
        start_date: datetime | None = None,
        expires_at: datetime | None = None,
        usage_limit: int | None = None,
        description: str | None = None,
        affiliate: str | None = None,
    ):
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError({"code": ["Coupon code is required"]})

        now = datetime.now(UTC)
        coupon = cls(
            code=normalized,
            coupon_type=coupon_type,
            value=value,
            max_discount=max_discount,
            min_order_amount=min_order_amount,
            start_date=start_date or now,
            expires_at=expires_at,
            usage_limit=usage_limit,
            used_count=0,
            is_active=True,
            description=description,
            affiliate=affiliate,
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                coupon_type=coupon.coupon_type,
                value=coupon.value,
                expires_at=coupon.expires_at,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Usability
    # -------------------------------------------------------------------
    def unusable_reason(self, at: datetime | None = None) -> str | None:
        """Return why the coupon cannot be used right now, or None if it can."""
        moment = as_utc(at) or datetime.now(UTC)

        if not self.is_active:
            return NOT_ACTIVE
        if self.start_date and moment < as_utc(self.start_date):
            return NOT_ACTIVE
        if self.expires_at and moment > as_utc(self.expires_at):
            return NOT_ACTIVE
        if self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit:
            return USAGE_LIMIT_REACHED
        return None

    def is_usable(self, at: datetime | None = None) -> bool:
        return self.unusable_reason(at) is None

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def record_redemption(self, cart_id: str):
        reason = self.unusable_reason()
        if reason == USAGE_LIMIT_REACHED:
            raise ValidationError({"code": [f"Coupon {self.code} has reached its usage limit"]})

        self.used_count = (self.used_count or 0) + 1
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                cart_id=cart_id,
                used_count=self.used_count,
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Coupon is already inactive"]})

        self.is_active = False
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CouponDeactivated(
                coupon_id=str(self.id),
                code=self.code,
            )
        )


@checkout.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        coupons = self._dao.query.filter(code=normalize_code(code)).all().items
        return coupons[0] if coupons else None
