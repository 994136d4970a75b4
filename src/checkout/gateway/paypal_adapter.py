"""PayPal payment gateway adapter (USD checkouts).

Uses the PayPal REST API v2 (Orders) with an OAuth2 client-credentials
token, cached until shortly before it expires. The cart id travels as the
purchase unit's ``custom_id`` and is echoed back on captures and webhooks.

PayPal webhooks are not HMAC-signed; they are verified by calling
``/v1/notifications/verify-webhook-signature`` with the ``paypal-*``
transmission headers and the configured webhook id.
"""

import json
import time
from collections.abc import Mapping

import httpx
import structlog

from checkout.cart.cart import PaymentMethod
from checkout.config import CheckoutSettings
from checkout.gateway.port import CaptureResult, OrderResult, PaymentGateway
from checkout.shared.billing import round_minor

logger = structlog.get_logger(__name__)

TRANSMISSION_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}

# Refresh the cached token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN = 60


class PayPalGateway(PaymentGateway):
    """Production PayPal adapter."""

    name = "paypal"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        webhook_id: str | None,
        api_base: str = "https://api-m.sandbox.paypal.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.webhook_id = webhook_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_settings(cls, settings: CheckoutSettings, transport: httpx.BaseTransport | None = None):
        return cls(
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            webhook_id=settings.paypal_webhook_id,
            api_base=settings.paypal_api_base,
            timeout=settings.gateway_timeout_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.api_base, timeout=self.timeout, transport=self._transport)

    def _token(self, client: httpx.Client) -> str:
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        response = client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id or "", self.client_secret or ""),
        )
        response.raise_for_status()
        data = response.json()
        self._access_token = data["access_token"]
        self._token_expires_at = time.time() + max(int(data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN, 0)
        return self._access_token

    def _authorized(self, client: httpx.Client) -> dict:
        return {"Authorization": f"Bearer {self._token(client)}", "Content-Type": "application/json"}

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
        if not self.client_id or not self.client_secret:
            return OrderResult(success=False, status="failed", failure_reason="PayPal credentials not configured")

        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": receipt,
                    "custom_id": cart_id,
                    "description": description,
                    "amount": {"currency_code": currency, "value": f"{round_minor(amount, currency):.2f}"},
                }
            ],
            "application_context": {
                "user_action": "PAY_NOW",
                "shipping_preference": "NO_SHIPPING",
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }
        try:
            with self._client() as client:
                response = client.post("/v2/checkout/orders", json=payload, headers=self._authorized(client))
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error("paypal_create_order_failed", cart_id=cart_id, error=str(exc))
            return OrderResult(success=False, status="failed", failure_reason=str(exc))

        approval_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        return OrderResult(
            success=True,
            order_id=data.get("id"),
            status=data.get("status"),
            approval_url=approval_url,
        )

    def capture_order(self, order_id: str) -> CaptureResult:
        try:
            with self._client() as client:
                response = client.post(f"/v2/checkout/orders/{order_id}/capture", headers=self._authorized(client))
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error("paypal_capture_failed", order_id=order_id, error=str(exc))
            return CaptureResult(success=False, status="failed", failure_reason=str(exc))

        status = data.get("status")
        units = data.get("purchase_units") or [{}]
        captures = (units[0].get("payments") or {}).get("captures") or [{}]
        capture = captures[0]

        if status != "COMPLETED":
            return CaptureResult(success=False, status=status, failure_reason=f"Capture status {status}")

        return CaptureResult(
            success=True,
            transaction_id=capture.get("id"),
            status=status,
            reference=capture.get("custom_id") or units[0].get("custom_id"),
            payment_method=PaymentMethod.PAYPAL.value,
        )

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        if not self.webhook_id:
            logger.error("paypal_webhook_id_missing")
            return False

        lowered = {key.lower(): value for key, value in headers.items()}
        verification = {field: lowered.get(header) for field, header in TRANSMISSION_HEADERS.items()}
        if not all(verification.values()):
            return False

        try:
            event = json.loads(raw_body)
        except ValueError:
            return False

        verification["webhook_id"] = self.webhook_id
        verification["webhook_event"] = event
        try:
            with self._client() as client:
                response = client.post(
                    "/v1/notifications/verify-webhook-signature",
                    json=verification,
                    headers=self._authorized(client),
                )
                response.raise_for_status()
                return response.json().get("verification_status") == "SUCCESS"
        except httpx.HTTPError as exc:
            logger.error("paypal_webhook_verification_failed", error=str(exc))
            return False

    def verify_client_signature(self, order_id: str, payment_id: str, signature: str) -> bool:  # noqa: ARG002
        # PayPal has no client-side signature; confirmations go through capture_order
        return False
