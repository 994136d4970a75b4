"""Tests for plan seeding and the plan catalog."""

from checkout.catalog.lookup import PlanCatalog
from checkout.catalog.plan import Plan
from checkout.catalog.seed import DEFAULT_PLANS, SeedPlans
from protean.utils.globals import current_domain


def test_seeding_creates_every_tier():
    created = current_domain.process(SeedPlans(), asynchronous=False)

    assert created == len(DEFAULT_PLANS)
    names = [plan.name for plan in PlanCatalog().active_plans()]
    assert names == ["free", "basic", "pro", "enterprise"]


def test_seeding_twice_creates_nothing_new():
    current_domain.process(SeedPlans(), asynchronous=False)
    assert current_domain.process(SeedPlans(), asynchronous=False) == 0


def test_reseeding_restores_prices():
    current_domain.process(SeedPlans(), asynchronous=False)
    repo = current_domain.repository_for(Plan)
    pro = repo.find_by_name("pro")
    pro.update_pricing(monthly_price_inr=1299.0)
    repo.add(pro)

    current_domain.process(SeedPlans(), asynchronous=False)

    assert repo.find_by_name("pro").monthly_price_inr == 999.0


def test_keep_prices_leaves_existing_plans_alone():
    current_domain.process(SeedPlans(), asynchronous=False)
    repo = current_domain.repository_for(Plan)
    pro = repo.find_by_name("pro")
    pro.update_pricing(monthly_price_inr=1299.0)
    repo.add(pro)

    current_domain.process(SeedPlans(update_existing=False), asynchronous=False)

    assert repo.find_by_name("pro").monthly_price_inr == 1299.0


class TestPlanCatalog:
    def test_quote(self, plans):
        quote = PlanCatalog().quote("enterprise", "yearly", "INR")
        assert quote.display_name == "Enterprise"
        # 2499 * 12 * 0.75 = 22491
        assert quote.amount == 22491.0
        assert quote.features["sso"] is True

    def test_unknown_plan_has_no_quote(self, plans):
        assert PlanCatalog().quote("platinum", "monthly", "INR") is None

    def test_retired_plan_does_not_resolve(self, plans):
        repo = current_domain.repository_for(Plan)
        basic = repo.find_by_name("basic")
        basic.is_active = False
        repo.add(basic)

        assert PlanCatalog().resolve("basic") is None
