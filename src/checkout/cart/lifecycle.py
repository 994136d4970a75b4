"""Cart lifecycle service: creation, payment updates, and signup completion.

The service is the only writer of carts. It resolves plan prices and
coupons, persists carts through the CartRepository, and performs the
after-commit side effects of a completed payment: recording the coupon
redemption and sending the welcome email.

Payment updates for one cart are serialised in-process, and the final write
goes through ``compare_and_swap_status``. If the stored status moved on
between read and write, the cart is re-read and the update is treated as a
repeat delivery instead of an error.

The welcome email is best-effort: a delivery failure is logged and returned
to the caller as ``email_warning`` while the cart change stays committed.
"""

import threading
import weakref
from dataclasses import dataclass
from datetime import datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from checkout.cart.cart import (
    FREE_GATEWAYS,
    Cart,
    PaymentStatus,
    PostalAddress,
    Purchaser,
)
from checkout.catalog.lookup import PlanCatalog
from checkout.catalog.plan import PlanName
from checkout.config import CheckoutSettings
from checkout.coupon.evaluator import CouponEvaluator
from checkout.coupon.management import RedeemCoupon
from checkout.domain import logger
from checkout.exceptions import ConflictError, SignupTokenInvalid, UpstreamGatewayError
from checkout.gateway import get_gateway
from checkout.mail import get_mailer
from checkout.mail.email_port import Mailer, WelcomeEmail
from checkout.shared.billing import to_decimal
from checkout.signup.tokens import SignupTokenIssuer

# Attempts at a compare-and-swap before giving up on a contended cart
MAX_UPDATE_ATTEMPTS = 3

_locks_guard = threading.Lock()
# A cart's lock lives only while some caller holds a reference to it
_cart_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()


def _lock_for(cart_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _cart_locks.get(str(cart_id))
        if lock is None:
            lock = threading.Lock()
            _cart_locks[str(cart_id)] = lock
        return lock


@dataclass(frozen=True)
class CartCreation:
    cart: Cart
    email_warning: str | None = None

    @property
    def signup_token(self) -> str | None:
        return self.cart.signup_token if self.cart.is_completed else None


@dataclass(frozen=True)
class PaymentUpdate:
    cart: Cart
    changed: bool
    email_warning: str | None = None


@dataclass(frozen=True)
class GatewayOrder:
    cart: Cart
    provider: str
    order_id: str
    amount: float
    currency: str
    amount_minor: int | None = None
    approval_url: str | None = None
    key_id: str | None = None  # Public key the browser widget needs (Razorpay)


class CartLifecycleService:
    def __init__(
        self,
        settings: CheckoutSettings,
        catalog: PlanCatalog | None = None,
        coupons: CouponEvaluator | None = None,
        tokens: SignupTokenIssuer | None = None,
        mailer: Mailer | None = None,
    ):
        self.settings = settings
        self.catalog = catalog or PlanCatalog()
        self.coupons = coupons or CouponEvaluator()
        self.tokens = tokens or SignupTokenIssuer.from_settings(settings)
        self._mailer = mailer

    @property
    def mailer(self) -> Mailer:
        return self._mailer or get_mailer(self.settings)

    @property
    def _repo(self):
        return current_domain.repository_for(Cart)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_cart(
        self,
        plan: str,
        billing_cycle: str,
        amount: float,
        currency: str,
        user_details: dict,
        gateway: str,
        user_id: str | None = None,
        coupon_code: str | None = None,
    ) -> CartCreation:
        """Open a cart for a plan purchase.

        Free plans and zero-amount carts are completed immediately, with a
        signup token and no gateway round-trip.
        """
        if amount is None or amount < 0:
            raise ValidationError({"amount": ["Amount must be zero or more"]})

        purchaser = build_purchaser(user_details)
        plan_amount = self._resolve_plan_amount(plan, billing_cycle, amount, currency, coupon_code)

        discount_amount = None
        normalized_code = None
        if coupon_code:
            validation = self.coupons.validate(coupon_code, base_amount=plan_amount)
            if not validation.valid:
                raise ValidationError({"coupon_code": [f"Coupon {coupon_code}: {validation.reason}"]})
            normalized_code = validation.coupon.code
            discount_amount = self.coupons.apply(validation.coupon, plan_amount)

        total_amount = None
        if plan_amount is not None and currency:
            try:
                total_amount = self.coupons.total_after_discount(plan_amount, discount_amount, currency)
            except ValueError:
                # Unsupported currency; Cart.create reports it against the field
                total_amount = None

        cart = Cart.create(
            purchaser=purchaser,
            plan=plan,
            billing_cycle=billing_cycle,
            plan_amount=plan_amount,
            currency=currency,
            gateway=gateway,
            total_amount=total_amount,
            discount_amount=discount_amount,
            coupon_code=normalized_code,
            user_id=user_id,
        )

        if cart.is_free_checkout:
            cart.complete(self.tokens, now=cart.created_at)

        self._repo.add(cart)
        logger.info(
            "cart_created",
            cart_id=str(cart.id),
            plan=plan,
            billing_cycle=billing_cycle,
            gateway=gateway,
            total_amount=cart.payment.total_amount,
            currency=currency,
            completed=cart.is_completed,
        )

        email_warning = None
        if cart.is_completed:
            self._redeem_coupon(cart)
            email_warning = self._send_welcome_email(cart)
        return CartCreation(cart=cart, email_warning=email_warning)

    def _resolve_plan_amount(
        self,
        plan: str,
        billing_cycle: str,
        amount: float,
        currency: str,
        coupon_code: str | None,
    ) -> float:
        """Pick the base price for the cart.

        The catalog price wins when it is within the configured tolerance of
        the supplied amount. Otherwise the supplied amount is trusted, since
        the storefront may have priced the plan itself. With a coupon, the
        catalog price is the base the discount is computed from.
        """
        if plan == PlanName.FREE.value:
            return 0.0

        try:
            quote = self.catalog.quote(plan, billing_cycle, currency)
        except ValueError:
            # Unknown billing cycle or currency; Cart.create reports it against the field
            return amount
        if quote is None:
            return amount
        if coupon_code:
            return quote.amount

        tolerance = to_decimal(quote.amount) * to_decimal(self.settings.catalog_price_tolerance_percent) / 100
        if abs(to_decimal(quote.amount) - to_decimal(amount)) <= tolerance:
            return quote.amount

        logger.warning(
            "catalog_price_mismatch",
            plan=plan,
            billing_cycle=billing_cycle,
            currency=currency,
            catalog_amount=quote.amount,
            supplied_amount=amount,
        )
        return amount

    # -------------------------------------------------------------------
    # Payment updates
    # -------------------------------------------------------------------
    def update_cart_payment(
        self,
        cart_id: str,
        status: str,
        transaction_id: str | None = None,
        payment_method: str | None = None,
    ) -> PaymentUpdate:
        """Apply a gateway-reported payment status to a cart.

        Raises:
            ObjectNotFoundError: No cart has this id.
            ConflictError: The transition is not allowed (e.g. completed → pending).
        """
        try:
            target = PaymentStatus(status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unsupported payment status: {status}"]}) from exc

        with _lock_for(cart_id):
            cart, changed = self._swap_status(cart_id, target, transaction_id, payment_method)

        if not changed:
            logger.info("cart_payment_unchanged", cart_id=str(cart_id), status=target.value)
            return PaymentUpdate(cart=cart, changed=False)

        logger.info(
            "cart_payment_updated",
            cart_id=str(cart_id),
            status=target.value,
            transaction_id=transaction_id,
        )

        email_warning = None
        if target == PaymentStatus.COMPLETED:
            self._redeem_coupon(cart)
            email_warning = self._send_welcome_email(cart)
        return PaymentUpdate(cart=cart, changed=True, email_warning=email_warning)

    def _swap_status(self, cart_id, target, transaction_id, payment_method) -> tuple[Cart, bool]:
        repo = self._repo
        for _ in range(MAX_UPDATE_ATTEMPTS):
            cart = repo.find_by_id(cart_id)
            if cart is None:
                raise ObjectNotFoundError(f"Cart {cart_id} not found")

            outcome = {"changed": False}

            def mutate(stored: Cart) -> bool:
                outcome["changed"] = stored.record_payment_status(
                    target.value,
                    self.tokens,
                    transaction_id=transaction_id,
                    payment_method=payment_method,
                )
                return outcome["changed"]

            saved = repo.compare_and_swap_status(cart_id, cart.status, mutate)
            if saved is None:
                # Status moved on since the read; retry against the fresh state
                continue
            return saved, outcome["changed"]

        raise ConflictError(f"Cart {cart_id} is being updated concurrently", cart_id=str(cart_id))

    # -------------------------------------------------------------------
    # Resumption and gateway orders
    # -------------------------------------------------------------------
    def load_cart_for_resumption(self, cart_id: str) -> Cart:
        """Reload a cart so the buyer can retry payment.

        Failed and cancelled carts are reopened as pending. Completed carts
        cannot be resumed.
        """
        with _lock_for(cart_id):
            repo = self._repo
            cart = repo.find_by_id(cart_id)
            if cart is None:
                raise ObjectNotFoundError(f"Cart {cart_id} not found")
            if cart.is_completed:
                raise ConflictError("Cart already completed", cart_id=str(cart_id))

            if cart.resume():
                repo.add(cart)
                logger.info("cart_resumed", cart_id=str(cart_id))
        return cart

    def create_gateway_order(self, cart_id: str, return_url: str | None = None, cancel_url: str | None = None):
        """Ask the cart's gateway for a payment order and remember its id.

        Raises:
            UpstreamGatewayError: The gateway refused or could not be reached;
                the cart stays pending.
        """
        cart = self.get_cart_by_id(cart_id)
        if cart is None:
            raise ObjectNotFoundError(f"Cart {cart_id} not found")
        if cart.is_free_checkout or cart.payment.gateway in FREE_GATEWAYS:
            raise ValidationError({"payment_gateway": ["Free checkouts do not need a payment order"]})
        if cart.status != PaymentStatus.PENDING:
            raise ConflictError(
                f"Cannot create a payment order for a {cart.status.value} cart",
                cart_id=str(cart_id),
            )

        provider = cart.payment.gateway
        gateway = get_gateway(provider, self.settings)
        result = gateway.create_order(
            amount=cart.payment.total_amount,
            currency=cart.payment.currency,
            cart_id=str(cart.id),
            receipt=cart.payment.payment_id,
            description=f"{cart.subscription.plan} plan ({cart.subscription.billing_cycle})",
            return_url=return_url,
            cancel_url=cancel_url,
        )
        if not result.success:
            logger.error(
                "gateway_order_failed",
                cart_id=str(cart_id),
                provider=provider,
                reason=result.failure_reason,
            )
            raise UpstreamGatewayError(
                result.failure_reason or "Payment gateway did not create an order",
                cart_id=str(cart_id),
                provider=provider,
            )

        with _lock_for(cart_id):
            repo = self._repo
            cart = repo.get(cart_id)
            cart.attach_gateway_order(result.order_id)
            repo.add(cart)

        logger.info("gateway_order_created", cart_id=str(cart_id), provider=provider, order_id=result.order_id)
        return GatewayOrder(
            cart=cart,
            provider=provider,
            order_id=result.order_id,
            amount=cart.payment.total_amount,
            currency=cart.payment.currency,
            amount_minor=result.amount_minor,
            approval_url=result.approval_url,
            key_id=self.settings.razorpay_key_id if provider == "razorpay" else None,
        )

    # -------------------------------------------------------------------
    # Signup handoff
    # -------------------------------------------------------------------
    def complete_signup(self, signup_token: str, now: datetime | None = None) -> Cart:
        """Consume a signup token and mark the cart's signup as done.

        Raises:
            ObjectNotFoundError: No cart carries this token.
            SignupTokenExpired: The token's expiry has passed.
            ConflictError: Signup was already completed for this cart.
        """
        found = self._repo.find_by_signup_token(signup_token)
        if found is None:
            raise ObjectNotFoundError("No cart found for this signup token")

        with _lock_for(found.id):
            repo = self._repo
            cart = repo.get(found.id)
            self._assert_token_binds(cart, signup_token)
            cart.complete_signup(now=now)
            repo.add(cart)

        logger.info("signup_completed", cart_id=str(cart.id))
        return cart

    def _assert_token_binds(self, cart: Cart, signup_token: str) -> None:
        try:
            claims = self.tokens.validate(signup_token)
        except SignupTokenInvalid as exc:
            raise ObjectNotFoundError("No cart found for this signup token") from exc
        if claims.cart_id != str(cart.id):
            raise ObjectNotFoundError("No cart found for this signup token")

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_cart_by_id(self, cart_id: str) -> Cart | None:
        return self._repo.find_by_id(cart_id)

    def get_cart_by_signup_token(self, signup_token: str) -> Cart | None:
        """Completed carts only, for the partner's authenticated read."""
        cart = self._repo.find_by_signup_token(signup_token)
        if cart is None or not cart.is_completed:
            return None
        return cart

    def get_cart_by_signup_token_for_signup(self, signup_token: str) -> Cart | None:
        """Any status, for the signup page to show where the purchase stands."""
        return self._repo.find_by_signup_token(signup_token)

    # -------------------------------------------------------------------
    # After-commit side effects
    # -------------------------------------------------------------------
    def signup_url(self, cart: Cart) -> str:
        return f"{self.settings.signup_url_base.rstrip('/')}/{cart.signup_token}"

    def _send_welcome_email(self, cart: Cart) -> str | None:
        plan = self.catalog.resolve(cart.subscription.plan)
        delivery = self.mailer.send_welcome(
            WelcomeEmail(
                to=cart.purchaser.email,
                name=cart.purchaser.name,
                plan=cart.subscription.plan,
                plan_display_name=plan.display_name if plan else None,
                signup_url=self.signup_url(cart),
                expires_at=cart.token_expiry,
                amount=cart.payment.total_amount,
                currency=cart.payment.currency,
            )
        )
        if not delivery.sent:
            warning = delivery.error or "Welcome email could not be sent"
            logger.warning("welcome_email_failed", cart_id=str(cart.id), error=warning)
            return warning

        logger.info("welcome_email_sent", cart_id=str(cart.id), message_id=delivery.message_id)
        return None

    def _redeem_coupon(self, cart: Cart) -> None:
        if not cart.coupon_code:
            return
        try:
            current_domain.process(
                RedeemCoupon(code=cart.coupon_code, cart_id=str(cart.id)),
                asynchronous=False,
            )
        except ValidationError as exc:
            # The payment is already committed; an over-used coupon is reported, not reversed
            logger.warning(
                "coupon_redemption_failed",
                cart_id=str(cart.id),
                code=cart.coupon_code,
                error=str(exc.messages),
            )


def build_purchaser(user_details: dict) -> Purchaser:
    """Build the purchaser snapshot from request data.

    Accepts either ``name`` or ``first_name`` + ``last_name``. Email is
    lower-cased. Missing address parts are reported by field.
    """
    details = user_details or {}
    name = (details.get("name") or "").strip()
    if not name:
        name = " ".join(part.strip() for part in (details.get("first_name"), details.get("last_name")) if part)
    if not name:
        raise ValidationError({"name": ["Name (or first and last name) is required"]})

    email = (details.get("email") or "").strip().lower()
    if not email:
        raise ValidationError({"email": ["Email is required"]})

    address = details.get("address")
    if not address:
        raise ValidationError({"address": ["Postal address is required"]})

    business = details.get("business") or {}
    return Purchaser(
        name=name,
        email=email,
        address=PostalAddress(
            street=address.get("street"),
            city=address.get("city"),
            state=address.get("state"),
            country=address.get("country"),
            postal_code=address.get("postal_code"),
        ),
        company=business.get("company") or details.get("company"),
        tax_id=business.get("tax_id") or details.get("tax_id"),
    )