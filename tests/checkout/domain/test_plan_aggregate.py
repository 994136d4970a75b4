"""Tests for the Plan aggregate and its derived prices."""

import pytest
from checkout.catalog.plan import Plan
from protean.exceptions import ValidationError


def _pro(**overrides):
    defaults = {
        "name": "pro",
        "display_name": "Pro",
        "monthly_price_usd": 12.0,
        "monthly_price_inr": 999.0,
        "yearly_discount_percent": 20.0,
        "features": {"projects": 50},
    }
    defaults.update(overrides)
    return Plan.create(**defaults)


class TestPlanPricing:
    def test_monthly_price_per_currency(self):
        plan = _pro()
        assert plan.price_for("monthly", "USD") == 12.0
        assert plan.price_for("monthly", "INR") == 999.0

    def test_yearly_price_applies_discount(self):
        plan = _pro()
        # 12 * 12 * 0.8
        assert plan.price_for("yearly", "USD") == 115.2
        # 999 * 12 * 0.8 = 9590.4, whole rupees
        assert plan.price_for("yearly", "INR") == 9590.0

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValueError):
            _pro().price_for("monthly", "EUR")

    def test_features_round_trip_as_dict(self):
        assert _pro().feature_set() == {"projects": 50}

    def test_update_pricing_changes_only_given_fields(self):
        plan = _pro()
        plan.update_pricing(monthly_price_usd=15.0)
        assert plan.monthly_price_usd == 15.0
        assert plan.monthly_price_inr == 999.0


class TestFreePlan:
    def test_free_plan_is_free(self):
        plan = Plan.create(name="free", display_name="Free")
        assert plan.is_free
        assert plan.price_for("yearly", "USD") == 0.0

    def test_free_plan_cannot_carry_a_price(self):
        with pytest.raises(ValidationError) as exc:
            Plan.create(name="free", display_name="Free", monthly_price_usd=5.0)
        assert "name" in exc.value.messages

    def test_unknown_plan_name_rejected(self):
        with pytest.raises(ValidationError):
            Plan.create(name="platinum", display_name="Platinum")
