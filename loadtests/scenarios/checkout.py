"""Checkout load test scenarios.

Stateful SequentialTaskSet journeys covering the Razorpay widget flow,
Razorpay webhooks, failed payments that are resumed, free-plan signups
and coupon checkouts.
The target server must run with ``CHECKOUT_GATEWAY_MODE=fake`` so that the
fake gateways accept the ``test-signature`` signatures sent here.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    coupon_data,
    free_cart_data,
    razorpay_cart_data,
    razorpay_confirmation,
    razorpay_webhook,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import CheckoutState


class _CheckoutJourney(SequentialTaskSet):
    def on_start(self):
        self.state = CheckoutState()

    def _create_cart(self, payload, name):
        with self.client.post("/cart/create", json=payload, catch_response=True, name=name) as resp:
            if resp.status_code == 201:
                data = resp.json()
                self.state.cart_id = data["cartId"]
                self.state.payment_id = data["paymentId"]
                self.state.current_status = data["status"]
                self.state.signup_token = data.get("signupToken")
            else:
                resp.failure(f"Create cart failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    def _create_order(self):
        with self.client.post(
            "/payments/razorpay/orders",
            json={"cartId": self.state.cart_id},
            catch_response=True,
            name="POST /payments/razorpay/orders",
        ) as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["orderId"]
            else:
                resp.failure(f"Create order failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()


class RazorpayWidgetJourney(_CheckoutJourney):
    """Create Cart -> Razorpay Order -> Widget Confirmation -> Partner Reads Cart."""

    @task
    def create_cart(self):
        self._create_cart(razorpay_cart_data(), "POST /cart/create (razorpay)")

    @task
    def create_order(self):
        self._create_order()

    @task
    def confirm_payment(self):
        with self.client.post(
            "/payments/razorpay/confirm",
            json=razorpay_confirmation(self.state.cart_id, self.state.order_id),
            catch_response=True,
            name="POST /payments/razorpay/confirm",
        ) as resp:
            if resp.status_code == 200:
                self.state.current_status = "completed"
                self.state.signup_token = resp.json()["signupToken"]
            else:
                resp.failure(f"Confirmation failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def done(self):
        self.interrupt()


class RazorpayWebhookJourney(_CheckoutJourney):
    """Create Cart -> Razorpay Order -> payment.captured webhook, delivered twice."""

    @task
    def create_cart(self):
        self._create_cart(razorpay_cart_data(), "POST /cart/create (razorpay)")

    @task
    def create_order(self):
        self._create_order()

    @task
    def deliver_webhook(self):
        body, headers = razorpay_webhook("payment.captured", self.state.cart_id)
        # Gateways redeliver; the second delivery must be a no-op
        for attempt in ("first", "redelivery"):
            with self.client.post(
                "/webhooks/razorpay",
                data=body,
                headers=headers,
                catch_response=True,
                name=f"POST /webhooks/razorpay ({attempt})",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Webhook failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class FailedPaymentResumeJourney(_CheckoutJourney):
    """Create Cart -> payment.failed webhook -> Load Cart (resume) -> Order -> Complete."""

    @task
    def create_cart(self):
        self._create_cart(razorpay_cart_data(), "POST /cart/create (razorpay)")

    @task
    def fail_payment(self):
        body, headers = razorpay_webhook("payment.failed", self.state.cart_id)
        self.client.post("/webhooks/razorpay", data=body, headers=headers, name="POST /webhooks/razorpay (failed)")

    @task
    def resume(self):
        with self.client.get(
            "/cart/load",
            params={"cartId": self.state.cart_id},
            catch_response=True,
            name="GET /cart/load",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Resume failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def retry(self):
        self._create_order()
        body, headers = razorpay_webhook("payment.captured", self.state.cart_id)
        self.client.post("/webhooks/razorpay", data=body, headers=headers, name="POST /webhooks/razorpay (captured)")

    @task
    def done(self):
        self.interrupt()


class FreePlanJourney(_CheckoutJourney):
    """Free cart (completed on creation) -> partner signup read -> signup completion."""

    @task
    def create_cart(self):
        self._create_cart(free_cart_data(), "POST /cart/create (free)")

    @task
    def complete_signup(self):
        partner_key = self.user.environment.parsed_options.partner_key if self.user.environment.parsed_options else None
        if not partner_key or not self.state.signup_token:
            self.interrupt()
        headers = {"Authorization": f"Bearer {partner_key}"}
        self.client.get(
            "/signup",
            params={"token": self.state.signup_token},
            headers=headers,
            name="GET /signup",
        )
        self.client.patch(
            "/signup/complete",
            json={"signupToken": self.state.signup_token},
            headers=headers,
            name="PATCH /signup/complete",
        )

    @task
    def done(self):
        self.interrupt()


class CouponCheckoutJourney(_CheckoutJourney):
    """Partner creates a coupon -> buyer previews it -> discounted cart."""

    @task
    def create_coupon(self):
        partner_key = self.user.environment.parsed_options.partner_key if self.user.environment.parsed_options else None
        if not partner_key:
            self.interrupt()
        coupon = coupon_data()
        with self.client.post(
            "/coupons",
            json=coupon,
            headers={"Authorization": f"Bearer {partner_key}"},
            catch_response=True,
            name="POST /coupons",
        ) as resp:
            if resp.status_code == 201:
                self.coupon_code = resp.json()["coupon"]["code"]
            else:
                resp.failure(f"Create coupon failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def preview_and_checkout(self):
        payload = razorpay_cart_data()
        with self.client.post(
            "/coupons/validate",
            json={"code": self.coupon_code, "amount": payload["amount"], "currency": payload["currency"]},
            catch_response=True,
            name="POST /coupons/validate",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Coupon preview failed: {resp.status_code} - {extract_error_detail(resp)}")
                self.interrupt()
            payload["amount"] = resp.json()["finalAmount"]
        payload["couponCode"] = self.coupon_code
        self._create_cart(payload, "POST /cart/create (coupon)")

    @task
    def done(self):
        self.interrupt()


class CheckoutUser(HttpUser):
    """Checkout traffic weighted toward paid Razorpay checkouts."""

    wait_time = between(0.5, 2)
    tasks = {
        RazorpayWidgetJourney: 4,
        RazorpayWebhookJourney: 3,
        FailedPaymentResumeJourney: 1,
        FreePlanJourney: 2,
        CouponCheckoutJourney: 1,
    }
