"""Stress test scenarios for cart creation and webhook contention.

CartFloodUser opens carts as fast as possible. WebhookStormUser hammers a
single cart with concurrent duplicate deliveries to exercise the per-cart
serialisation of payment updates.
"""

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import free_cart_data, paypal_cart_data, razorpay_cart_data, razorpay_webhook


class CartFloodUser(HttpUser):
    """Stress test: maximum cart creation throughput.

    No sequential dependencies; every task creates a new cart.
    """

    wait_time = constant_pacing(0.1)  # ~10 requests/sec per user

    @task(5)
    def create_razorpay_cart(self):
        self.client.post("/cart/create", json=razorpay_cart_data(), name="[STRESS] POST /cart/create (razorpay)")

    @task(3)
    def create_paypal_cart(self):
        self.client.post("/cart/create", json=paypal_cart_data(), name="[STRESS] POST /cart/create (paypal)")

    @task(2)
    def create_free_cart(self):
        self.client.post("/cart/create", json=free_cart_data(), name="[STRESS] POST /cart/create (free)")


class WebhookStormUser(HttpUser):
    """Spike test: duplicate webhook deliveries for one cart per user.

    Spawn many of these at once; each cart must end up completed with a
    single signup token and a single welcome email.
    """

    wait_time = constant_pacing(0.05)  # ~20 req/sec per user

    def on_start(self):
        resp = self.client.post("/cart/create", json=razorpay_cart_data(), name="[STORM] POST /cart/create")
        self.cart_id = resp.json()["cartId"] if resp.status_code == 201 else None

    @task
    def deliver_captured(self):
        if not self.cart_id:
            return
        body, headers = razorpay_webhook("payment.captured", self.cart_id)
        self.client.post("/webhooks/razorpay", data=body, headers=headers, name="[STORM] POST /webhooks/razorpay")
