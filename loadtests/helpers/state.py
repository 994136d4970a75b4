"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state, with no cross-user
sharing. State tracks the ids returned by creation endpoints so follow-up
operations can reference them.
"""

from dataclasses import dataclass


@dataclass
class CheckoutState:
    """Tracks state for a single simulated checkout."""

    cart_id: str | None = None
    payment_id: str | None = None
    order_id: str | None = None
    signup_token: str | None = None
    current_status: str = "pending"
