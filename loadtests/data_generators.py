"""Faker-based data generators for Locust load test scenarios.

Each generator produces camelCase payloads that pass the checkout's
validation rules (purchaser email and address, gateway/currency pairing)
and match the field names expected by the API's Pydantic request schemas.
"""

import json
import random
import uuid

from faker import Faker

fake = Faker()
fake_in = Faker("en_IN")

# Monthly catalog prices; yearly is monthly * 12 less the plan's yearly discount
PLAN_PRICES = {
    "basic": {"INR": 499.0, "USD": 6.0, "yearly_discount": 20},
    "pro": {"INR": 999.0, "USD": 12.0, "yearly_discount": 20},
    "enterprise": {"INR": 2499.0, "USD": 30.0, "yearly_discount": 25},
}

TEST_SIGNATURE = "test-signature"


def valid_email() -> str:
    """Unique, lower-case emails so carts never collide between users."""
    local = fake.user_name()[:20]
    return f"{local}.{uuid.uuid4().hex[:6]}@{fake.free_email_domain()}".lower()


def plan_amount(plan: str, billing_cycle: str, currency: str) -> float:
    monthly = PLAN_PRICES[plan][currency]
    if billing_cycle == "monthly":
        return monthly
    yearly = monthly * 12 * (100 - PLAN_PRICES[plan]["yearly_discount"]) / 100
    return float(round(yearly)) if currency == "INR" else round(yearly, 2)


def indian_user_details() -> dict:
    return {
        "name": fake_in.name()[:200],
        "email": valid_email(),
        "address": {
            "street": fake_in.street_address()[:255],
            "city": fake_in.city()[:100],
            "state": fake_in.state()[:100],
            "country": "India",
            "pincode": fake_in.postcode()[:20],
        },
    }


def us_user_details(with_business: bool = False) -> dict:
    details = {
        "firstName": fake.first_name(),
        "lastName": fake.last_name(),
        "email": valid_email(),
        "address": {
            "street": fake.street_address()[:255],
            "city": fake.city()[:100],
            "state": fake.state_abbr(),
            "country": "United States",
            "postalCode": fake.zipcode()[:20],
        },
    }
    if with_business:
        details["business"] = {"company": fake.company()[:255], "taxId": f"EIN-{random.randint(10**8, 10**9 - 1)}"}
    return details


def razorpay_cart_data(plan: str | None = None, billing_cycle: str | None = None) -> dict:
    plan = plan or random.choice(list(PLAN_PRICES))
    billing_cycle = billing_cycle or random.choice(["monthly", "yearly"])
    return {
        "plan": plan,
        "billingCycle": billing_cycle,
        "amount": plan_amount(plan, billing_cycle, "INR"),
        "currency": "INR",
        "paymentGateway": "razorpay",
        "userDetails": indian_user_details(),
    }


def paypal_cart_data(plan: str | None = None, billing_cycle: str | None = None) -> dict:
    plan = plan or random.choice(list(PLAN_PRICES))
    billing_cycle = billing_cycle or random.choice(["monthly", "yearly"])
    return {
        "plan": plan,
        "billingCycle": billing_cycle,
        "amount": plan_amount(plan, billing_cycle, "USD"),
        "currency": "USD",
        "paymentGateway": "paypal",
        "userDetails": us_user_details(with_business=random.random() < 0.3),
    }


def free_cart_data() -> dict:
    region = random.choice(["IN", "US"])
    return {
        "plan": "free",
        "billingCycle": "monthly",
        "amount": 0,
        "currency": "INR" if region == "IN" else "USD",
        "paymentGateway": "free-india" if region == "IN" else "free-us",
        "userDetails": indian_user_details() if region == "IN" else us_user_details(),
    }


def razorpay_webhook(event: str, cart_id: str) -> tuple[str, dict]:
    """Webhook body (pre-serialised, since the signature covers the raw bytes) and headers."""
    body = {
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": f"pay_{uuid.uuid4().hex[:14]}",
                    "method": random.choice(["card", "upi", "netbanking", "wallet"]),
                    "notes": {"cart_id": cart_id},
                }
            }
        },
    }
    headers = {"Content-Type": "application/json", "X-Razorpay-Signature": TEST_SIGNATURE}
    return json.dumps(body), headers


def razorpay_confirmation(cart_id: str, order_id: str) -> dict:
    return {
        "cartId": cart_id,
        "razorpayOrderId": order_id,
        "razorpayPaymentId": f"pay_{uuid.uuid4().hex[:14]}",
        "razorpaySignature": TEST_SIGNATURE,
        "method": random.choice(["card", "upi"]),
    }


def coupon_data() -> dict:
    return {
        "code": f"LT{uuid.uuid4().hex[:8].upper()}",
        "couponType": "percentage",
        "value": random.choice([5, 10, 15, 20]),
        "usageLimit": 1000,
    }
