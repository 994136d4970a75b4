"""Integration tests for the coupon and plan endpoints."""

import pytest


@pytest.fixture()
def coupon(client, partner_headers):
    response = client.post(
        "/coupons",
        json={"code": "save20", "couponType": "percentage", "value": 20, "maxDiscount": 500, "usageLimit": 10},
        headers=partner_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["coupon"]


class TestCoupons:
    def test_create(self, coupon):
        assert coupon["code"] == "SAVE20"
        assert coupon["usedCount"] == 0
        assert coupon["isActive"] is True

    def test_create_requires_partner_key(self, client):
        assert client.post("/coupons", json={"code": "X", "value": 5}).status_code == 401

    def test_duplicate_code(self, client, partner_headers, coupon):
        response = client.post("/coupons", json={"code": "SAVE20", "value": 5}, headers=partner_headers)
        assert response.status_code == 400

    def test_get(self, client, coupon):
        response = client.get("/coupons/save20")
        assert response.status_code == 200
        assert response.json()["coupon"]["maxDiscount"] == 500

    def test_get_unknown(self, client):
        assert client.get("/coupons/NOPE").status_code == 404

    def test_validate_previews_discount(self, client, coupon):
        response = client.post("/coupons/validate", json={"code": "save20", "amount": 12.34, "currency": "USD"})

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["discountAmount"] == pytest.approx(2.468)
        assert data["finalAmount"] == 9.87

    def test_validate_unknown_code(self, client):
        response = client.post("/coupons/validate", json={"code": "NOPE"})
        assert response.status_code == 404
        assert response.json()["error"] == "invalid code"

    def test_deactivate(self, client, partner_headers, coupon):
        response = client.post("/coupons/save20/deactivate", headers=partner_headers)
        assert response.status_code == 200

        validation = client.post("/coupons/validate", json={"code": "SAVE20"})
        assert validation.status_code == 400
        assert validation.json()["error"] == "expired/not active"

    def test_cart_with_coupon(self, client, partner_headers, coupon, cart_payload):
        client.post("/plans/seed", headers=partner_headers)
        cart_payload.update(amount=799, coupon="save20")

        data = client.post("/cart/create", json=cart_payload).json()

        assert data["totalAmount"] == 799.0


class TestPlans:
    def test_seed_and_list(self, client, partner_headers):
        seeded = client.post("/plans/seed", headers=partner_headers)
        assert seeded.json()["created"] == 4

        plans = client.get("/plans").json()["plans"]

        assert [plan["name"] for plan in plans] == ["free", "basic", "pro", "enterprise"]
        pro = plans[2]
        assert pro["monthlyPriceInr"] == 999.0
        assert pro["yearlyPriceUsd"] == 115.2
        assert pro["yearlyPriceInr"] == 9590.0

    def test_get_plan(self, client, plans):
        response = client.get("/plans/enterprise")
        assert response.status_code == 200
        assert response.json()["plan"]["features"]["sso"] is True

    def test_unknown_plan(self, client, plans):
        assert client.get("/plans/platinum").status_code == 404

    def test_seed_requires_partner_key(self, client):
        assert client.post("/plans/seed").status_code == 401
