"""Payment gateway port (abstract interface).

Defines the contract that every payment gateway adapter implements. The
checkout talks to Razorpay, PayPal, or the FakeGateway used in development
and tests only through these four operations.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class OrderResult:
    """Result of asking the gateway to open a payment order."""

    success: bool
    order_id: str | None = None
    status: str | None = None
    approval_url: str | None = None  # Where to send the buyer (redirect-based gateways)
    amount_minor: int | None = None  # Amount in the gateway's smallest unit
    failure_reason: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    """Result of capturing (or confirming) the payment for an order."""

    success: bool
    transaction_id: str | None = None
    status: str | None = None
    reference: str | None = None  # Our cart id, as echoed back by the gateway
    payment_method: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str

    @abstractmethod
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
        """Open an order the buyer can pay against."""
        ...

    @abstractmethod
    def capture_order(self, order_id: str) -> CaptureResult:
        """Capture the funds for an approved order."""
        ...

    @abstractmethod
    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        """Verify that a webhook delivery is authentically from the gateway."""
        ...

    @abstractmethod
    def verify_client_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Verify a payment confirmation relayed by the browser checkout widget."""
        ...
