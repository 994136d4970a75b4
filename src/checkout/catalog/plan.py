"""Plan aggregate: the subscription tiers a visitor can check out.

Plans are reference data for the checkout: carts read prices and feature
sets from them but never change them. Yearly prices are not stored; they are
derived from the monthly price and the plan's yearly discount.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from checkout.domain import checkout
from checkout.shared.billing import BillingCycle, Currency, round_minor, to_decimal


class PlanName(Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


@checkout.aggregate
class Plan:
    name = String(required=True, max_length=50, choices=PlanName, unique=True)
    plan_number = Integer(min_value=0)
    display_name = String(required=True, max_length=100)
    description = String(max_length=500)
    monthly_price_usd = Float(min_value=0.0, default=0.0)
    monthly_price_inr = Float(min_value=0.0, default=0.0)
    yearly_discount_percent = Float(min_value=0.0, max_value=100.0, default=0.0)
    features = Text()  # JSON object of feature flags and limits
    is_active = Boolean(default=True)
    sort_order = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def free_plan_has_no_price(self):
        if self.name == PlanName.FREE.value and (self.monthly_price_usd or self.monthly_price_inr):
            raise ValidationError({"name": ["The free plan cannot carry a price"]})

    @classmethod
    def create(
        cls,
        name: str,
        display_name: str,
        monthly_price_usd: float = 0.0,
        monthly_price_inr: float = 0.0,
        yearly_discount_percent: float = 0.0,
        features: dict | None = None,
        description: str | None = None,
        plan_number: int | None = None,
        sort_order: int = 0,
    ):
        now = datetime.now(UTC)
        return cls(
            name=name,
            plan_number=plan_number,
            display_name=display_name,
            description=description,
            monthly_price_usd=monthly_price_usd,
            monthly_price_inr=monthly_price_inr,
            yearly_discount_percent=yearly_discount_percent,
            features=json.dumps(features or {}),
            is_active=True,
            sort_order=sort_order,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_free(self) -> bool:
        return self.name == PlanName.FREE.value

    def feature_set(self) -> dict:
        return json.loads(self.features) if self.features else {}

    def monthly_price(self, currency: str) -> float:
        if Currency(currency) == Currency.INR:
            return self.monthly_price_inr or 0.0
        return self.monthly_price_usd or 0.0

    def price_for(self, billing_cycle: str, currency: str) -> float:
        """Price of one billing period, rounded to the currency's minor unit.

        yearly = monthly * 12 * (1 - yearly_discount_percent / 100)
        """
        monthly = to_decimal(self.monthly_price(currency))
        if BillingCycle(billing_cycle) == BillingCycle.MONTHLY:
            return round_minor(monthly, currency)

        discount_factor = 1 - to_decimal(self.yearly_discount_percent or 0) / Decimal(100)
        return round_minor(monthly * 12 * discount_factor, currency)

    def update_pricing(
        self,
        monthly_price_usd: float | None = None,
        monthly_price_inr: float | None = None,
        yearly_discount_percent: float | None = None,
    ):
        if monthly_price_usd is not None:
            self.monthly_price_usd = monthly_price_usd
        if monthly_price_inr is not None:
            self.monthly_price_inr = monthly_price_inr
        if yearly_discount_percent is not None:
            self.yearly_discount_percent = yearly_discount_percent
        self.updated_at = datetime.now(UTC)


@checkout.repository(part_of=Plan)
class PlanRepository:
    def find_by_name(self, name: str) -> Plan | None:
        plans = self._dao.query.filter(name=name).all().items
        return plans[0] if plans else None

    def find_active(self) -> list[Plan]:
        plans = self._dao.query.filter(is_active=True).all().items
        return sorted(plans, key=lambda plan: plan.sort_order or 0)
