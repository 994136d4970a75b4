"""Checkout bounded context: plan carts, coupons, and the signup handoff.

Turns a visitor's plan selection into a paid (or free) subscription cart,
routes payment through Razorpay (INR) or PayPal (USD), applies coupons, and
hands the completed cart to the external signup flow via a short-lived token.
"""

from protean.domain import Domain

from checkout.utils.logging import configure_logging, get_logger

configure_logging(log_dir="logs", log_file_prefix="checkout")

logger = get_logger(__name__)

# Domain Composition Root
checkout = Domain(name="checkout")
