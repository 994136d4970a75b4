"""Configurable fake payment gateway for development and testing.

This adapter simulates Razorpay or PayPal without any external calls. It can
be configured at runtime to succeed or fail, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Webhooks and client confirmations are accepted when they carry the
signature ``test-signature``.
"""

from collections.abc import Mapping
from uuid import uuid4

from checkout.gateway.port import CaptureResult, OrderResult, PaymentGateway

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment declined"
        self.calls: list[dict] = []
        self._orders: dict[str, str] = {}  # order id → cart id

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_order(
        self,
        amount: float,
        currency: str,
        cart_id: str,
        receipt: str,
        description: str,
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> OrderResult:
        self.calls.append(
            {
                "method": "create_order",
                "amount": amount,
                "currency": currency,
                "cart_id": cart_id,
                "receipt": receipt,
                "description": description,
            }
        )

        if not self.should_succeed:
            return OrderResult(success=False, status="failed", failure_reason=self.failure_reason)

        order_id = f"order_fake_{uuid4().hex[:12]}"
        self._orders[order_id] = cart_id
        return OrderResult(
            success=True,
            order_id=order_id,
            status="created",
            approval_url=f"https://fake-gateway.test/approve/{order_id}" if return_url else None,
            amount_minor=int(round(amount * 100)),
        )

    def capture_order(self, order_id: str) -> CaptureResult:
        self.calls.append({"method": "capture_order", "order_id": order_id})

        if not self.should_succeed:
            return CaptureResult(success=False, status="failed", failure_reason=self.failure_reason)
        return CaptureResult(
            success=True,
            transaction_id=f"fake_txn_{uuid4().hex[:12]}",
            status="COMPLETED",
            reference=self._orders.get(order_id),
            payment_method=self.name,
        )

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        self.calls.append({"method": "verify_webhook", "raw_body": raw_body})
        return any(
            value == TEST_SIGNATURE for key, value in headers.items() if key.lower().endswith(("signature", "-sig"))
        )

    def verify_client_signature(self, order_id: str, payment_id: str, signature: str) -> bool:  # noqa: ARG002
        return signature == TEST_SIGNATURE
