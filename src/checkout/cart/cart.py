"""Cart aggregate: one checkout attempt from plan selection to signup handoff.

The cart snapshots who is buying (purchaser), what they are buying
(subscription) and how it is being paid for (payment). All payment-state
rules live here.

State Machine (payment.status):
    PENDING → COMPLETED (terminal)
    PENDING → FAILED / CANCELLED
    FAILED / CANCELLED → PENDING (resumption only, never a gateway update)

A failed or cancelled cart must be resumed before it can be paid again.

Completing a cart sets the subscription dates and mints the signup token in
the same change. A cart that is already completed ignores further
completions, so duplicate gateway deliveries are harmless.
"""

import re
from datetime import datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, String, ValueObject

from checkout.cart.events import (
    CartCreated,
    CartPaymentCancelled,
    CartPaymentCompleted,
    CartPaymentFailed,
    CartResumed,
    GatewayOrderAttached,
    SignupCompleted,
)
from checkout.catalog.plan import PlanName
from checkout.domain import checkout
from checkout.exceptions import ConflictError, SignupTokenExpired
from checkout.shared.billing import (
    BillingCycle,
    Currency,
    add_billing_period,
    as_utc,
    half_minor_unit,
    round_minor,
    utc_now,
)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentGateway(Enum):
    RAZORPAY = "razorpay"
    PAYPAL = "paypal"
    FREE_INDIA = "free-india"
    FREE_US = "free-us"


class PaymentMethod(Enum):
    CARD = "card"
    UPI = "upi"
    NET_BANKING = "net-banking"
    WALLET = "wallet"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank-transfer"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},
    PaymentStatus.CANCELLED: {PaymentStatus.PENDING},
    PaymentStatus.COMPLETED: set(),  # Terminal
}

# Each gateway settles in its own region's currency
_GATEWAY_CURRENCY = {
    PaymentGateway.RAZORPAY: Currency.INR,
    PaymentGateway.PAYPAL: Currency.USD,
    PaymentGateway.FREE_INDIA: Currency.INR,
    PaymentGateway.FREE_US: Currency.USD,
}

FREE_GATEWAYS = {PaymentGateway.FREE_INDIA.value, PaymentGateway.FREE_US.value}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Cart")
class PostalAddress:
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    country = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)


@checkout.value_object(part_of="Cart")
class Purchaser:
    """Snapshot of the buyer at checkout time."""

    name = String(required=True, max_length=200)
    email = String(required=True, max_length=254)
    address = ValueObject(PostalAddress, required=True)
    company = String(max_length=255)
    tax_id = String(max_length=50)

    @invariant.post
    def name_must_not_be_blank(self):
        if self.name is not None and not self.name.strip():
            raise ValidationError({"name": ["Name cannot be blank"]})

    @invariant.post
    def email_must_be_valid(self):
        if self.email is not None and not _EMAIL_PATTERN.match(self.email):
            raise ValidationError({"email": [f"Invalid email address: {self.email!r}"]})


@checkout.value_object(part_of="Cart")
class Subscription:
    """The plan being bought, and the period it covers once paid."""

    plan = String(required=True, max_length=50, choices=PlanName)
    billing_cycle = String(required=True, max_length=20, choices=BillingCycle)
    plan_amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3, choices=Currency)
    is_active = Boolean(default=False)
    start_date = DateTime()
    end_date = DateTime()


@checkout.value_object(part_of="Cart")
class PaymentRecord:
    gateway = String(required=True, max_length=50, choices=PaymentGateway)
    payment_id = String(required=True, max_length=100)
    gateway_order_id = String(max_length=255)
    transaction_id = String(max_length=255)
    payment_method = String(max_length=50)
    total_amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3, choices=Currency)
    status = String(max_length=20, choices=PaymentStatus, default=PaymentStatus.PENDING.value)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@checkout.aggregate
class Cart:
    user_id = Identifier()  # Set when a logged-in visitor checks out
    purchaser = ValueObject(Purchaser, required=True)
    subscription = ValueObject(Subscription, required=True)
    payment = ValueObject(PaymentRecord, required=True)
    coupon_code = String(max_length=50)
    discount_amount = Float(min_value=0.0)
    signup_token = String(max_length=1000)
    token_expiry = DateTime()
    is_signup_completed = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def signup_token_only_when_completed(self):
        if self.signup_token and self.payment and self.payment.status != PaymentStatus.COMPLETED.value:
            raise ValidationError({"signup_token": ["A signup token can only exist on a completed cart"]})

    @invariant.post
    def signup_completion_requires_token(self):
        if self.is_signup_completed and not self.signup_token:
            raise ValidationError({"is_signup_completed": ["Signup cannot complete without a signup token"]})

    @invariant.post
    def subscription_dates_match_plan(self):
        subscription = self.subscription
        if subscription is None or subscription.start_date is None:
            return

        is_free_plan = subscription.plan == PlanName.FREE.value
        if is_free_plan and subscription.end_date is not None:
            raise ValidationError({"end_date": ["The free plan has no end date"]})
        if not is_free_plan:
            if subscription.end_date is None:
                raise ValidationError({"end_date": ["Paid plans must have an end date"]})
            if as_utc(subscription.end_date) <= as_utc(subscription.start_date):
                raise ValidationError({"end_date": ["End date must be after the start date"]})

    @invariant.post
    def total_matches_plan_amount_less_discount(self):
        if self.subscription is None or self.payment is None:
            return

        expected = self.subscription.plan_amount - (self.discount_amount or 0.0)
        tolerance = half_minor_unit(self.payment.currency) + 1e-9
        if abs(self.payment.total_amount - max(expected, 0.0)) > tolerance:
            raise ValidationError({"total_amount": ["Total must equal the plan amount less any discount"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        purchaser: Purchaser,
        plan: str,
        billing_cycle: str,
        plan_amount: float,
        currency: str,
        gateway: str,
        total_amount: float | None = None,
        discount_amount: float | None = None,
        coupon_code: str | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ):
        """Open a pending cart.

        ``total_amount`` is the payable amount after any discount; when it is
        omitted the plan amount less the discount is rounded to the currency's
        minor unit.
        """
        _validate_gateway(gateway, currency)

        now = now or utc_now()
        if total_amount is None:
            total_amount = round_minor(max(plan_amount - (discount_amount or 0.0), 0.0), currency)
        _validate_free_gateway(gateway, total_amount)

        cart = cls(
            user_id=user_id,
            purchaser=purchaser,
            subscription=Subscription(
                plan=plan,
                billing_cycle=billing_cycle,
                plan_amount=plan_amount,
                currency=currency,
                is_active=False,
            ),
            payment=PaymentRecord(
                gateway=gateway,
                payment_id=f"pay_{uuid4().hex[:16]}",
                total_amount=total_amount,
                currency=currency,
                status=PaymentStatus.PENDING.value,
            ),
            coupon_code=coupon_code,
            discount_amount=discount_amount,
            is_signup_completed=False,
            created_at=now,
            updated_at=now,
        )

        cart.raise_(
            CartCreated(
                cart_id=str(cart.id),
                payment_id=cart.payment.payment_id,
                email=purchaser.email,
                plan=plan,
                billing_cycle=billing_cycle,
                gateway=gateway,
                plan_amount=plan_amount,
                total_amount=total_amount,
                currency=currency,
                coupon_code=coupon_code,
                created_at=now,
            )
        )
        return cart

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def status(self) -> PaymentStatus:
        return PaymentStatus(self.payment.status)

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_free_checkout(self) -> bool:
        """Free plans and zero-amount carts complete without a gateway."""
        return self.subscription.plan == PlanName.FREE.value or self.payment.total_amount == 0

    def token_expired(self, now: datetime | None = None) -> bool:
        if self.token_expiry is None:
            return True
        return (as_utc(now) or utc_now()) >= as_utc(self.token_expiry)

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = self.status
        if target_status not in _VALID_TRANSITIONS[current]:
            if current == PaymentStatus.COMPLETED:
                raise ConflictError(
                    f"Cart {self.id} is already completed",
                    cart_id=str(self.id),
                    status=current.value,
                )
            raise ConflictError(
                f"Cannot transition from {current.value} to {target_status.value}",
                cart_id=str(self.id),
                status=current.value,
            )

    def _payment_with(self, **changes) -> PaymentRecord:
        current = self.payment
        values = {
            "gateway": current.gateway,
            "payment_id": current.payment_id,
            "gateway_order_id": current.gateway_order_id,
            "transaction_id": current.transaction_id,
            "payment_method": current.payment_method,
            "total_amount": current.total_amount,
            "currency": current.currency,
            "status": current.status,
        }
        values.update(changes)
        return PaymentRecord(**values)

    def _subscription_with(self, **changes) -> Subscription:
        current = self.subscription
        values = {
            "plan": current.plan,
            "billing_cycle": current.billing_cycle,
            "plan_amount": current.plan_amount,
            "currency": current.currency,
            "is_active": current.is_active,
            "start_date": current.start_date,
            "end_date": current.end_date,
        }
        values.update(changes)
        return Subscription(**values)

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def attach_gateway_order(self, gateway_order_id: str):
        """Remember the order the gateway created for this cart."""
        if self.status != PaymentStatus.PENDING:
            raise ConflictError(
                f"Cannot create a payment order for a {self.status.value} cart",
                cart_id=str(self.id),
                status=self.status.value,
            )

        self.payment = self._payment_with(gateway_order_id=gateway_order_id)
        self.updated_at = utc_now()

        self.raise_(
            GatewayOrderAttached(
                cart_id=str(self.id),
                gateway=self.payment.gateway,
                gateway_order_id=gateway_order_id,
            )
        )

    def record_payment_status(
        self,
        status: str,
        token_issuer,
        transaction_id: str | None = None,
        payment_method: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Apply a gateway-reported outcome. Returns False when nothing changed.

        Reporting the cart's current status again is a no-op; anything that
        would move a settled cart backwards raises ConflictError.
        """
        target = PaymentStatus(status)
        if target == PaymentStatus.COMPLETED:
            return self.complete(token_issuer, transaction_id=transaction_id, payment_method=payment_method, now=now)
        if target == PaymentStatus.FAILED:
            return self.fail(transaction_id=transaction_id, payment_method=payment_method)
        if target == PaymentStatus.CANCELLED:
            return self.cancel(transaction_id=transaction_id)
        if target == PaymentStatus.PENDING:
            if self.status == PaymentStatus.PENDING:
                return False
            # Only resumption may reopen a failed or cancelled cart
            raise ConflictError(
                f"Cannot move a {self.status.value} cart back to pending",
                cart_id=str(self.id),
                status=self.status.value,
            )
        raise ValidationError({"status": [f"Unsupported payment status: {status}"]})

    def complete(
        self,
        token_issuer,
        transaction_id: str | None = None,
        payment_method: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Mark the payment captured, start the subscription, and mint the signup token.

        Idempotent: completing a completed cart changes nothing and returns False.
        """
        if self.status == PaymentStatus.COMPLETED:
            return False
        self._assert_can_transition(PaymentStatus.COMPLETED)

        if not transaction_id and not self.is_free_checkout:
            raise ValidationError({"transaction_id": ["A transaction id is required to complete a paid cart"]})

        now = now or utc_now()
        is_free_plan = self.subscription.plan == PlanName.FREE.value
        end_date = None if is_free_plan else add_billing_period(now, self.subscription.billing_cycle)

        with atomic_change(self):
            self.payment = self._payment_with(
                status=PaymentStatus.COMPLETED.value,
                transaction_id=transaction_id or self.payment.transaction_id,
                payment_method=payment_method or self.payment.payment_method,
            )
            self.subscription = self._subscription_with(
                is_active=True,
                start_date=now,
                end_date=end_date,
            )
            # Mint-if-absent: one token per cart, ever
            if not self.signup_token:
                issued = token_issuer.generate(
                    email=self.purchaser.email,
                    plan=self.subscription.plan,
                    cart_id=str(self.id),
                    now=now,
                )
                self.signup_token = issued.token
                self.token_expiry = issued.expires_at
            self.updated_at = now

        self.raise_(
            CartPaymentCompleted(
                cart_id=str(self.id),
                transaction_id=self.payment.transaction_id,
                payment_method=self.payment.payment_method,
                total_amount=self.payment.total_amount,
                currency=self.payment.currency,
                start_date=now,
                end_date=end_date,
                token_expiry=self.token_expiry,
            )
        )
        return True

    def fail(self, transaction_id: str | None = None, payment_method: str | None = None) -> bool:
        if self.status == PaymentStatus.FAILED:
            return False
        self._assert_can_transition(PaymentStatus.FAILED)

        self.payment = self._payment_with(
            status=PaymentStatus.FAILED.value,
            transaction_id=transaction_id or self.payment.transaction_id,
            payment_method=payment_method or self.payment.payment_method,
        )
        self.updated_at = utc_now()

        self.raise_(
            CartPaymentFailed(
                cart_id=str(self.id),
                transaction_id=self.payment.transaction_id,
                payment_method=self.payment.payment_method,
            )
        )
        return True

    def cancel(self, transaction_id: str | None = None) -> bool:
        if self.status == PaymentStatus.CANCELLED:
            return False
        self._assert_can_transition(PaymentStatus.CANCELLED)

        self.payment = self._payment_with(
            status=PaymentStatus.CANCELLED.value,
            transaction_id=transaction_id or self.payment.transaction_id,
        )
        self.updated_at = utc_now()

        self.raise_(
            CartPaymentCancelled(
                cart_id=str(self.id),
                transaction_id=self.payment.transaction_id,
            )
        )
        return True

    def resume(self) -> bool:
        """Reopen a failed or cancelled cart for another payment attempt."""
        previous = self.status
        if previous == PaymentStatus.PENDING:
            return False
        self._assert_can_transition(PaymentStatus.PENDING)

        self.payment = self._payment_with(
            status=PaymentStatus.PENDING.value,
            gateway_order_id=None,
        )
        self.updated_at = utc_now()

        self.raise_(
            CartResumed(
                cart_id=str(self.id),
                previous_status=previous.value,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Signup handoff
    # -------------------------------------------------------------------
    def complete_signup(self, now: datetime | None = None):
        """Consume the signup token. Only ever flips false → true."""
        if not self.signup_token or not self.is_completed:
            raise ConflictError(f"Cart {self.id} has no signup token", cart_id=str(self.id))
        now = now or utc_now()
        if self.token_expired(now):
            raise SignupTokenExpired("Signup token has expired", cart_id=str(self.id))
        if self.is_signup_completed:
            raise ConflictError("Signup already completed", cart_id=str(self.id))

        self.is_signup_completed = True
        self.updated_at = now

        self.raise_(
            SignupCompleted(
                cart_id=str(self.id),
                email=self.purchaser.email,
                plan=self.subscription.plan,
                completed_at=now,
            )
        )


def _validate_gateway(gateway: str, currency: str) -> None:
    try:
        gateway_value = PaymentGateway(gateway)
    except ValueError as exc:
        raise ValidationError({"payment_gateway": [f"Unsupported payment gateway: {gateway}"]}) from exc
    try:
        currency_value = Currency(currency)
    except ValueError as exc:
        raise ValidationError({"currency": [f"Unsupported currency: {currency}"]}) from exc

    expected_currency = _GATEWAY_CURRENCY.get(gateway_value)
    if expected_currency is not None and expected_currency != currency_value:
        raise ValidationError(
            {"payment_gateway": [f"{gateway_value.value} only accepts {expected_currency.value} payments"]}
        )


def _validate_free_gateway(gateway: str, total_amount: float) -> None:
    if gateway in FREE_GATEWAYS and total_amount and total_amount > 0:
        raise ValidationError({"payment_gateway": [f"{gateway} can only be used for free checkouts"]})


@checkout.repository(part_of=Cart)
class CartRepository:
    """Narrow store interface for carts.

    Reads go through ``find_by_id`` and ``find_by_signup_token``; status
    changes go through ``compare_and_swap_status`` so that a write only
    lands if the cart is still in the status the caller read.
    """

    def find_by_id(self, cart_id: str) -> Cart | None:
        carts = self._dao.query.filter(id=cart_id).all().items
        return carts[0] if carts else None

    def find_by_signup_token(self, signup_token: str) -> Cart | None:
        if not signup_token:
            return None
        carts = self._dao.query.filter(signup_token=signup_token).all().items
        return carts[0] if carts else None

    def compare_and_swap_status(self, cart_id: str, expected_status: PaymentStatus, mutate) -> Cart | None:
        """Apply ``mutate`` and persist only if the stored status still matches.

        Returns the cart, or None when the stored status has moved on (the
        caller should re-read and treat the race as a no-op). Nothing is
        written when ``mutate`` returns False.
        """
        cart = self.get(cart_id)
        if cart.status != expected_status:
            return None

        if mutate(cart) is False:
            return cart

        try:
            self.add(cart)
        except ExpectedVersionError:
            # Another writer committed after our read
            return None
        return cart
