"""Plan seeding: command and handler.

Loads the standard plan tiers into the catalog. Existing plans are updated
in place, so seeding is safe to repeat.
"""

from protean import handle
from protean.fields import Boolean
from protean.utils.globals import current_domain

from checkout.catalog.plan import Plan, PlanName
from checkout.domain import checkout, logger

DEFAULT_PLANS = [
    {
        "name": PlanName.FREE.value,
        "plan_number": 0,
        "display_name": "Free",
        "description": "Get started with the essentials",
        "monthly_price_usd": 0.0,
        "monthly_price_inr": 0.0,
        "yearly_discount_percent": 0.0,
        "features": {"users": 1, "projects": 1, "support": "community"},
        "sort_order": 0,
    },
    {
        "name": PlanName.BASIC.value,
        "plan_number": 1,
        "display_name": "Basic",
        "description": "For individuals and small teams",
        "monthly_price_usd": 6.0,
        "monthly_price_inr": 499.0,
        "yearly_discount_percent": 20.0,
        "features": {"users": 3, "projects": 10, "support": "email"},
        "sort_order": 1,
    },
    {
        "name": PlanName.PRO.value,
        "plan_number": 2,
        "display_name": "Pro",
        "description": "For growing businesses",
        "monthly_price_usd": 12.0,
        "monthly_price_inr": 999.0,
        "yearly_discount_percent": 20.0,
        "features": {"users": 10, "projects": 100, "support": "priority", "analytics": True},
        "sort_order": 2,
    },
    {
        "name": PlanName.ENTERPRISE.value,
        "plan_number": 3,
        "display_name": "Enterprise",
        "description": "Unlimited scale with dedicated support",
        "monthly_price_usd": 30.0,
        "monthly_price_inr": 2499.0,
        "yearly_discount_percent": 25.0,
        "features": {"users": None, "projects": None, "support": "dedicated", "analytics": True, "sso": True},
        "sort_order": 3,
    },
]


@checkout.command(part_of="Plan")
class SeedPlans:
    """Create or refresh the standard plan tiers."""

    update_existing = Boolean(default=True)


@checkout.command_handler(part_of=Plan)
class SeedPlansHandler:
    @handle(SeedPlans)
    def seed_plans(self, command):
        repo = current_domain.repository_for(Plan)
        created = 0

        for data in DEFAULT_PLANS:
            plan = repo.find_by_name(data["name"])
            if plan is None:
                repo.add(Plan.create(**data))
                created += 1
            elif command.update_existing:
                plan.update_pricing(
                    monthly_price_usd=data["monthly_price_usd"],
                    monthly_price_inr=data["monthly_price_inr"],
                    yearly_discount_percent=data["yearly_discount_percent"],
                )
                repo.add(plan)

        logger.info("plans_seeded", created=created, total=len(DEFAULT_PLANS))
        return created
