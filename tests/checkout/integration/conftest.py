import pytest
from checkout.api import (
    cart_router,
    coupon_router,
    payment_router,
    plan_router,
    register_checkout_exception_handlers,
    signup_router,
    webhook_router,
)
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (cart_router, signup_router, payment_router, webhook_router, coupon_router, plan_router):
        app.include_router(router)
    register_checkout_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def cart_payload():
    return {
        "plan": "pro",
        "billingCycle": "monthly",
        "amount": 999,
        "currency": "INR",
        "paymentGateway": "razorpay",
        "userDetails": {
            "name": "Asha Rao",
            "email": "Asha@Example.com",
            "address": {
                "street": "12 MG Road",
                "city": "Bengaluru",
                "state": "KA",
                "country": "India",
                "pincode": "560001",
            },
        },
    }


@pytest.fixture()
def usd_cart_payload():
    return {
        "plan": "pro",
        "billingCycle": "monthly",
        "amount": 12,
        "currency": "USD",
        "paymentGateway": "paypal",
        "userDetails": {
            "firstName": "Sam",
            "lastName": "Lee",
            "email": "sam@example.com",
            "address": {
                "street": "1 Market St",
                "city": "San Francisco",
                "state": "CA",
                "country": "United States",
                "postalCode": "94105",
            },
            "business": {"company": "Lee Labs", "gstin": "US-123"},
        },
    }


@pytest.fixture()
def create_cart(client):
    def _create(payload):
        response = client.post("/cart/create", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture()
def complete_cart(client):
    def _complete(cart_id, transaction_id="pay_123"):
        response = client.patch(
            "/cart/update",
            json={"cartId": cart_id, "status": "completed", "transactionId": transaction_id, "paymentMethod": "upi"},
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _complete
