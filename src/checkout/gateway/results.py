"""Gateway result adapter: turns gateway callbacks into cart payment updates.

Three kinds of callbacks reach the checkout:

- redirect: the buyer returns from PayPal's approval page and the order is
  captured server-side.
- webhook: Razorpay or PayPal notifies us asynchronously; the raw body is
  signature-checked before anything is parsed.
- client-confirm: the Razorpay widget relays ``order_id|payment_id`` signed
  with our key secret.

Every callback is normalised into a ``PaymentOutcome`` and applied through
``CartLifecycleService.update_cart_payment``. Redelivered callbacks are
harmless because completion is idempotent. Events we do not act on
normalise to ``None`` and are acknowledged without touching any cart.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from checkout.cart.cart import PaymentMethod, PaymentStatus
from checkout.config import CheckoutSettings
from checkout.domain import logger
from checkout.exceptions import AuthenticationError, UpstreamGatewayError
from checkout.gateway import get_gateway
from checkout.gateway.razorpay_adapter import normalize_method


class EventKind(Enum):
    REDIRECT = "redirect"
    WEBHOOK = "webhook"
    CLIENT_CONFIRM = "client-confirm"


@dataclass(frozen=True)
class GatewayEvent:
    kind: EventKind
    provider: str
    payload: dict
    raw_body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentOutcome:
    cart_id: str
    status: str
    transaction_id: str | None = None
    payment_method: str | None = None


# Razorpay webhook event → cart payment status
RAZORPAY_EVENT_STATUS = {
    "payment.authorized": PaymentStatus.COMPLETED,
    "payment.captured": PaymentStatus.COMPLETED,
    "payment.failed": PaymentStatus.FAILED,
    "refund.processed": PaymentStatus.CANCELLED,
    "payment.refunded": PaymentStatus.CANCELLED,
}

# PayPal webhook event → cart payment status
PAYPAL_EVENT_STATUS = {
    "PAYMENT.CAPTURE.COMPLETED": PaymentStatus.COMPLETED,
    "PAYMENT.CAPTURE.DENIED": PaymentStatus.FAILED,
    "PAYMENT.CAPTURE.REFUNDED": PaymentStatus.CANCELLED,
    "PAYMENT.CAPTURE.REVERSED": PaymentStatus.CANCELLED,
}


class GatewayResultAdapter:
    def __init__(self, service, settings: CheckoutSettings):
        self.service = service
        self.settings = settings

    def handle(self, event: GatewayEvent):
        """Normalise ``event`` and apply it. Returns the PaymentUpdate, or None if ignored."""
        outcome = self.normalize(event)
        if outcome is None:
            return None
        return self.service.update_cart_payment(
            outcome.cart_id,
            outcome.status,
            transaction_id=outcome.transaction_id,
            payment_method=outcome.payment_method,
        )

    def normalize(self, event: GatewayEvent) -> PaymentOutcome | None:
        if event.kind == EventKind.WEBHOOK:
            return self._from_webhook(event)
        if event.kind == EventKind.REDIRECT:
            return self._from_redirect(event)
        if event.kind == EventKind.CLIENT_CONFIRM:
            return self._from_client_confirm(event)
        raise ValueError(f"Unsupported gateway event kind: {event.kind}")

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def _from_webhook(self, event: GatewayEvent) -> PaymentOutcome | None:
        gateway = get_gateway(event.provider, self.settings)
        if not gateway.verify_webhook(event.raw_body, event.headers):
            logger.warning("webhook_signature_rejected", provider=event.provider, security=True)
            raise AuthenticationError("Invalid webhook signature", provider=event.provider)

        if event.provider == "razorpay":
            return self._razorpay_webhook(event.payload)
        return self._paypal_webhook(event.payload)

    def _razorpay_webhook(self, body: dict) -> PaymentOutcome | None:
        event_type = body.get("event")
        status = RAZORPAY_EVENT_STATUS.get(event_type)
        if status is None:
            logger.info("webhook_event_ignored", provider="razorpay", event_type=event_type)
            return None

        payment = ((body.get("payload") or {}).get("payment") or {}).get("entity") or {}
        cart_id = (payment.get("notes") or {}).get("cart_id")
        if not cart_id:
            logger.warning("webhook_without_cart", provider="razorpay", event_type=event_type)
            return None

        return PaymentOutcome(
            cart_id=cart_id,
            status=status.value,
            transaction_id=payment.get("id"),
            payment_method=normalize_method(payment.get("method")),
        )

    def _paypal_webhook(self, body: dict) -> PaymentOutcome | None:
        event_type = body.get("event_type")
        status = PAYPAL_EVENT_STATUS.get(event_type)
        if status is None:
            logger.info("webhook_event_ignored", provider="paypal", event_type=event_type)
            return None

        resource = body.get("resource") or {}
        cart_id = resource.get("custom_id")
        if not cart_id:
            logger.warning("webhook_without_cart", provider="paypal", event_type=event_type)
            return None

        return PaymentOutcome(
            cart_id=cart_id,
            status=status.value,
            transaction_id=resource.get("id"),
            payment_method=PaymentMethod.PAYPAL.value,
        )

    # -------------------------------------------------------------------
    # Buyer redirect (PayPal)
    # -------------------------------------------------------------------
    def _from_redirect(self, event: GatewayEvent) -> PaymentOutcome:
        order_id = event.payload.get("token") or event.payload.get("order_id")
        cart_id = event.payload.get("cart_id")
        if not order_id or not cart_id:
            raise ValueError("Both the order token and the cart id are required")

        result = get_gateway(event.provider, self.settings).capture_order(order_id)
        if not result.success:
            logger.warning("gateway_capture_failed", provider=event.provider, cart_id=cart_id, reason=result.failure_reason)
            raise UpstreamGatewayError(
                result.failure_reason or "Payment capture failed",
                provider=event.provider,
                cart_id=cart_id,
            )

        # The gateway echoes the cart id it was given at order creation
        if result.reference and result.reference != cart_id:
            logger.warning("gateway_reference_mismatch", provider=event.provider, cart_id=cart_id, security=True)
            raise AuthenticationError("Payment does not belong to this cart", cart_id=cart_id)

        return PaymentOutcome(
            cart_id=cart_id,
            status=PaymentStatus.COMPLETED.value,
            transaction_id=result.transaction_id,
            payment_method=PaymentMethod.PAYPAL.value,
        )

    # -------------------------------------------------------------------
    # Client confirmation (Razorpay widget)
    # -------------------------------------------------------------------
    def _from_client_confirm(self, event: GatewayEvent) -> PaymentOutcome:
        payload = event.payload
        cart_id = payload.get("cart_id")
        order_id = payload.get("order_id")
        payment_id = payload.get("payment_id")
        signature = payload.get("signature")
        if not (cart_id and order_id and payment_id and signature):
            raise ValueError("cart_id, order_id, payment_id and signature are required")

        gateway = get_gateway(event.provider, self.settings)
        if not gateway.verify_client_signature(order_id, payment_id, signature):
            logger.warning("client_signature_rejected", provider=event.provider, cart_id=cart_id, security=True)
            raise AuthenticationError("Invalid payment signature", cart_id=cart_id)

        cart = self.service.get_cart_by_id(cart_id)
        if cart is not None and cart.payment.gateway_order_id != order_id:
            logger.warning("gateway_order_mismatch", provider=event.provider, cart_id=cart_id, security=True)
            raise AuthenticationError("Payment order does not belong to this cart", cart_id=cart_id)

        return PaymentOutcome(
            cart_id=cart_id,
            status=PaymentStatus.COMPLETED.value,
            transaction_id=payment_id,
            payment_method=normalize_method(payload.get("method")),
        )
