"""Read-only plan catalog used by the checkout.

Resolves a plan name to its pricing and feature set. Unknown or retired
plans resolve to ``None``; callers decide whether that is an error.
"""

from dataclasses import dataclass, field

from protean.utils.globals import current_domain

from checkout.catalog.plan import Plan


@dataclass(frozen=True)
class PlanQuote:
    """A plan's price for one billing cycle and currency."""

    plan: str
    display_name: str
    billing_cycle: str
    currency: str
    amount: float
    features: dict = field(default_factory=dict)


class PlanCatalog:
    def resolve(self, plan_name: str) -> Plan | None:
        plan = current_domain.repository_for(Plan).find_by_name(plan_name)
        if plan is None or not plan.is_active:
            return None
        return plan

    def quote(self, plan_name: str, billing_cycle: str, currency: str) -> PlanQuote | None:
        plan = self.resolve(plan_name)
        if plan is None:
            return None
        return PlanQuote(
            plan=plan.name,
            display_name=plan.display_name,
            billing_cycle=billing_cycle,
            currency=currency,
            amount=plan.price_for(billing_cycle, currency),
            features=plan.feature_set(),
        )

    def active_plans(self) -> list[Plan]:
        return current_domain.repository_for(Plan).find_active()
