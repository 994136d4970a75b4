"""Tests for the Coupon aggregate: usability rules and redemption."""

from datetime import UTC, datetime, timedelta

import pytest
from checkout.coupon.coupon import (
    NOT_ACTIVE,
    USAGE_LIMIT_REACHED,
    Coupon,
)
from checkout.coupon.events import CouponCreated, CouponDeactivated, CouponRedeemed
from protean.exceptions import ValidationError


def _coupon(**overrides):
    defaults = {"code": "launch20", "value": 20.0}
    defaults.update(overrides)
    return Coupon.create(**defaults)


class TestCouponCreation:
    def test_code_is_stored_upper_case(self):
        coupon = _coupon(code="  launch20 ")
        assert coupon.code == "LAUNCH20"
        assert coupon.used_count == 0
        assert coupon.is_active is True

    def test_creation_raises_event(self):
        coupon = _coupon()
        assert isinstance(coupon._events[-1], CouponCreated)
        assert coupon._events[-1].code == "LAUNCH20"

    def test_blank_code_rejected(self):
        with pytest.raises(ValidationError):
            _coupon(code="   ")

    def test_percentage_over_hundred_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _coupon(value=120.0)
        assert "value" in exc.value.messages

    def test_amount_coupon_may_exceed_hundred(self):
        coupon = _coupon(coupon_type="amount", value=500.0)
        assert coupon.value == 500.0

    def test_expiry_must_follow_start(self):
        now = datetime.now(UTC)
        with pytest.raises(ValidationError):
            _coupon(start_date=now, expires_at=now - timedelta(days=1))


class TestCouponUsability:
    def test_fresh_coupon_is_usable(self):
        assert _coupon().is_usable()

    def test_expired_coupon(self):
        now = datetime.now(UTC)
        coupon = _coupon(start_date=now - timedelta(days=10), expires_at=now - timedelta(days=1))
        assert coupon.unusable_reason() == NOT_ACTIVE

    def test_not_yet_started_coupon(self):
        coupon = _coupon(start_date=datetime.now(UTC) + timedelta(days=1))
        assert coupon.unusable_reason() == NOT_ACTIVE

    def test_inactive_coupon(self):
        coupon = _coupon()
        coupon.deactivate()
        assert coupon.unusable_reason() == NOT_ACTIVE

    def test_usage_limit_reached(self):
        coupon = _coupon(usage_limit=1)
        coupon.record_redemption("cart-1")
        assert coupon.unusable_reason() == USAGE_LIMIT_REACHED

    def test_expiry_reported_before_usage_limit(self):
        now = datetime.now(UTC)
        coupon = _coupon(usage_limit=1, start_date=now - timedelta(days=5), expires_at=now + timedelta(days=1))
        coupon.record_redemption("cart-1")
        assert coupon.unusable_reason(at=now + timedelta(days=2)) == NOT_ACTIVE


class TestCouponRedemption:
    def test_redemption_counts_use(self):
        coupon = _coupon()
        coupon.record_redemption("cart-1")
        assert coupon.used_count == 1
        assert isinstance(coupon._events[-1], CouponRedeemed)
        assert coupon._events[-1].cart_id == "cart-1"

    def test_redemption_beyond_limit_rejected(self):
        coupon = _coupon(usage_limit=1)
        coupon.record_redemption("cart-1")
        with pytest.raises(ValidationError):
            coupon.record_redemption("cart-2")
        assert coupon.used_count == 1

    def test_deactivate_twice_rejected(self):
        coupon = _coupon()
        coupon.deactivate()
        assert isinstance(coupon._events[-1], CouponDeactivated)
        with pytest.raises(ValidationError):
            coupon.deactivate()
