"""Razorpay payment gateway adapter (INR checkouts).

Talks to the Razorpay REST API with HTTP basic auth (key id / key secret):
- Orders are created with the cart id in ``notes`` so webhooks can be
  routed back to the cart.
- Razorpay captures automatically, so "capture" looks up the order's
  payments and reports the first captured or authorized one.
- Webhooks carry ``X-Razorpay-Signature``: HMAC-SHA256 of the raw body
  with the webhook secret.
- The browser checkout widget returns ``razorpay_signature``:
  HMAC-SHA256 of ``order_id|payment_id`` with the key secret.
"""

import hashlib
import hmac
from collections.abc import Mapping
from decimal import Decimal

import httpx
import structlog

from checkout.cart.cart import PaymentMethod
from checkout.config import CheckoutSettings
from checkout.gateway.port import CaptureResult, OrderResult, PaymentGateway
from checkout.shared.billing import to_decimal

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"

# Razorpay's payment "method" values, mapped onto our payment methods
_METHOD_MAP = {
    "card": PaymentMethod.CARD.value,
    "upi": PaymentMethod.UPI.value,
    "netbanking": PaymentMethod.NET_BANKING.value,
    "wallet": PaymentMethod.WALLET.value,
    "emi": PaymentMethod.CARD.value,
}


def to_subunits(amount: float) -> int:
    """Razorpay amounts are integers in paise (1/100 rupee)."""
    return int(to_decimal(amount) * Decimal(100))


def hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def normalize_method(method: str | None) -> str | None:
    if not method:
        return None
    return _METHOD_MAP.get(method.lower(), method.lower())


class RazorpayGateway(PaymentGateway):
    """Production Razorpay adapter."""

    name = "razorpay"

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        webhook_secret: str | None,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: CheckoutSettings, transport: httpx.BaseTransport | None = None):
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
            api_base=settings.razorpay_api_base,
            timeout=settings.gateway_timeout_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.api_base,
            auth=(self.key_id or "", self.key_secret or ""),
            timeout=self.timeout,
            transport=self._transport,
        )

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
        if not self.key_id or not self.key_secret:
            return OrderResult(success=False, status="failed", failure_reason="Razorpay credentials not configured")

        payload = {
            "amount": to_subunits(amount),
            "currency": currency,
            "receipt": receipt[:40],
            "notes": {"cart_id": cart_id, "description": description},
        }
        try:
            with self._client() as client:
                response = client.post("/orders", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error("razorpay_create_order_failed", cart_id=cart_id, error=str(exc))
            return OrderResult(success=False, status="failed", failure_reason=str(exc))

        return OrderResult(
            success=True,
            order_id=data.get("id"),
            status=data.get("status"),
            amount_minor=data.get("amount"),
        )

    def capture_order(self, order_id: str) -> CaptureResult:
        try:
            with self._client() as client:
                response = client.get(f"/orders/{order_id}/payments")
                response.raise_for_status()
                payments = response.json().get("items", [])
        except httpx.HTTPError as exc:
            logger.error("razorpay_capture_lookup_failed", order_id=order_id, error=str(exc))
            return CaptureResult(success=False, status="failed", failure_reason=str(exc))

        for payment in payments:
            if payment.get("status") in ("captured", "authorized"):
                return CaptureResult(
                    success=True,
                    transaction_id=payment.get("id"),
                    status=payment.get("status"),
                    reference=(payment.get("notes") or {}).get("cart_id"),
                    payment_method=normalize_method(payment.get("method")),
                )

        return CaptureResult(success=False, status="failed", failure_reason="No captured payment for order")

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        if not self.webhook_secret:
            logger.error("razorpay_webhook_secret_missing")
            return False

        signature = _header(headers, SIGNATURE_HEADER)
        if not signature:
            return False
        return hmac.compare_digest(hmac_sha256(self.webhook_secret, raw_body), signature)

    def verify_client_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret or not signature:
            return False
        expected = hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode())
        return hmac.compare_digest(expected, signature)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None
