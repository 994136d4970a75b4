"""FastAPI endpoints for the Checkout service.

Routes that reach a payment gateway, the mailer or a per-cart lock are plain
``def`` so FastAPI runs them in its threadpool; the adapters use blocking
``httpx.Client`` calls.
"""

import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from checkout.api.dependencies import (
    get_checkout_settings,
    get_lifecycle_service,
    get_result_adapter,
    read_raw_body,
    require_partner_key,
)
from checkout.api.errors import error_response
from checkout.api.schemas import (
    AcknowledgedResponse,
    CartDataEnvelope,
    CartEnvelope,
    CartView,
    CompleteSignupRequest,
    ConfigureGatewayRequest,
    CouponEnvelope,
    CouponValidationResponse,
    CouponView,
    CreateCartRequest,
    CreateCartResponse,
    CreateCouponRequest,
    CreateGatewayOrderRequest,
    GatewayConfigResponse,
    GatewayOrderResponse,
    PaymentConfirmationResponse,
    PlanEnvelope,
    PlanListResponse,
    PlanView,
    RazorpayConfirmRequest,
    SeedPlansRequest,
    SeedPlansResponse,
    SignupCartView,
    SignupCompleteResponse,
    UpdateCartRequest,
    ValidateCouponRequest,
)
from checkout.cart.lifecycle import CartLifecycleService
from checkout.catalog.lookup import PlanCatalog
from checkout.catalog.seed import SeedPlans
from checkout.config import CheckoutSettings
from checkout.coupon.coupon import INVALID_CODE, Coupon
from checkout.coupon.evaluator import CouponEvaluator
from checkout.coupon.management import CreateCoupon, DeactivateCoupon
from checkout.domain import logger
from checkout.exceptions import AuthenticationError, ConflictError, UpstreamGatewayError
from checkout.gateway import get_gateway
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.results import EventKind, GatewayEvent, GatewayResultAdapter

cart_router = APIRouter(prefix="/cart", tags=["cart"])
signup_router = APIRouter(prefix="/signup", tags=["signup"])
payment_router = APIRouter(prefix="/payments", tags=["payments"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])
plan_router = APIRouter(prefix="/plans", tags=["plans"])


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
@cart_router.post("/create", status_code=201, response_model=CreateCartResponse)
def create_cart(
    body: CreateCartRequest,
    service: CartLifecycleService = Depends(get_lifecycle_service),
) -> CreateCartResponse:
    """Open a cart. Free plans come back completed, with a signup token."""
    created = service.create_cart(
        plan=body.plan,
        billing_cycle=body.billing_cycle,
        amount=body.amount,
        currency=body.currency,
        user_details=body.user_details.as_details(),
        gateway=body.payment_gateway,
        user_id=body.user_id,
        coupon_code=body.coupon_code,
    )
    cart = created.cart

    if cart.is_completed:
        message = (
            "Free plan cart created but welcome email could not be sent"
            if created.email_warning
            else "Free plan cart created and welcome email sent"
        )
    else:
        message = "Cart created"

    return CreateCartResponse(
        message=message,
        cart_id=str(cart.id),
        payment_id=cart.payment.payment_id,
        status=cart.payment.status,
        total_amount=cart.payment.total_amount,
        currency=cart.payment.currency,
        signup_token=created.signup_token,
        email_error=created.email_warning,
    )


@cart_router.get("/load", response_model=CartEnvelope)
def load_cart(
    cart_id: str = Query(..., alias="cartId"),
    service: CartLifecycleService = Depends(get_lifecycle_service),
):
    """Reload a cart to retry payment. Failed and cancelled carts are reopened."""
    try:
        cart = service.load_cart_for_resumption(cart_id)
    except ConflictError:
        return error_response(400, "Cart already completed", "This cart has already been paid for")
    return CartEnvelope(message="Cart loaded successfully", cart=CartView.from_cart(cart))


@cart_router.get("", response_model=CartDataEnvelope, dependencies=[Depends(require_partner_key)])
def get_cart_by_signup(
    signup: str = Query(..., min_length=1),
    service: CartLifecycleService = Depends(get_lifecycle_service),
):
    """Partner read of a completed cart by its signup token."""
    cart = service.get_cart_by_signup_token(signup)
    if cart is None:
        return error_response(404, "Cart not found", "No completed cart found with the provided signup token")
    return CartDataEnvelope(message="Cart retrieved successfully", data=CartView.from_cart(cart))


@cart_router.patch("/update", response_model=CartDataEnvelope)
def update_cart(
    body: UpdateCartRequest,
    service: CartLifecycleService = Depends(get_lifecycle_service),
) -> CartDataEnvelope:
    update = service.update_cart_payment(
        body.cart_id,
        body.status,
        transaction_id=body.transaction_id,
        payment_method=body.payment_method,
    )

    if not update.changed:
        message = "Cart already up to date"
    elif update.cart.is_completed:
        message = (
            "Cart updated but welcome email could not be sent"
            if update.email_warning
            else "Cart updated and welcome email sent"
        )
    else:
        message = "Cart updated"

    return CartDataEnvelope(
        message=message,
        data=CartView.from_cart(update.cart),
        email_error=update.email_warning,
    )


# ---------------------------------------------------------------------------
# Signup handoff (partner)
# ---------------------------------------------------------------------------
@signup_router.get("", response_model=CartEnvelope, dependencies=[Depends(require_partner_key)])
def get_signup_cart(
    token: str = Query(..., min_length=1),
    service: CartLifecycleService = Depends(get_lifecycle_service),
):
    """Cart details for the signup page, unless the token is spent or expired."""
    cart = service.get_cart_by_signup_token_for_signup(token)
    if cart is None:
        return error_response(404, "Invalid signup token", "No cart found with the provided signup token")
    if cart.token_expired():
        return error_response(401, "Signup token expired", "The signup token has expired. Please generate a new one.")
    if cart.is_signup_completed:
        return error_response(400, "Signup already completed", "This signup has already been completed")
    return CartEnvelope(message="Cart details retrieved successfully", cart=CartView.from_cart(cart))


@signup_router.patch("/complete", response_model=SignupCompleteResponse, dependencies=[Depends(require_partner_key)])
def complete_signup(
    body: CompleteSignupRequest,
    service: CartLifecycleService = Depends(get_lifecycle_service),
):
    try:
        cart = service.complete_signup(body.signup_token)
    except (ObjectNotFoundError, ConflictError):
        return error_response(
            404,
            "Signup completion failed",
            "No cart found with the provided signup token or signup already completed",
        )
    return SignupCompleteResponse(message="Signup completed successfully", cart=SignupCartView.from_cart(cart))


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
@payment_router.post("/{gateway}/orders", status_code=201, response_model=GatewayOrderResponse)
def create_gateway_order(
    gateway: str,
    body: CreateGatewayOrderRequest,
    request: Request,
    service: CartLifecycleService = Depends(get_lifecycle_service),
    settings: CheckoutSettings = Depends(get_checkout_settings),
) -> GatewayOrderResponse:
    """Open a payment order with the cart's gateway."""
    cart = service.get_cart_by_id(body.cart_id)
    if cart is None:
        raise ObjectNotFoundError(f"Cart {body.cart_id} not found")
    if cart.payment.gateway != gateway:
        raise ValidationError({"payment_gateway": [f"Cart {body.cart_id} is paid through {cart.payment.gateway}"]})

    return_url = body.return_url
    cancel_url = body.cancel_url
    if gateway == "paypal":
        return_url = return_url or str(request.url_for("paypal_return").include_query_params(cartId=body.cart_id))
        cancel_url = cancel_url or f"{settings.base_url}/checkout?error=payment_cancelled"

    order = service.create_gateway_order(body.cart_id, return_url=return_url, cancel_url=cancel_url)
    return GatewayOrderResponse(
        cart_id=str(order.cart.id),
        provider=order.provider,
        order_id=order.order_id,
        amount=order.amount,
        currency=order.currency,
        amount_minor=order.amount_minor,
        approval_url=order.approval_url,
        key_id=order.key_id,
    )


@payment_router.get("/paypal/return", name="paypal_return")
def paypal_return(
    token: str | None = Query(None),
    cart_id: str | None = Query(None, alias="cartId"),
    adapter: GatewayResultAdapter = Depends(get_result_adapter),
    settings: CheckoutSettings = Depends(get_checkout_settings),
) -> RedirectResponse:
    """Buyer lands here after approving on PayPal; capture and redirect."""
    checkout_url = f"{settings.base_url}/checkout"
    if not token or not cart_id:
        return RedirectResponse(f"{checkout_url}?error=missing_params")

    event = GatewayEvent(kind=EventKind.REDIRECT, provider="paypal", payload={"token": token, "cart_id": cart_id})
    try:
        adapter.handle(event)
    except (UpstreamGatewayError, AuthenticationError):
        return RedirectResponse(f"{checkout_url}?error=payment_failed")
    except ObjectNotFoundError:
        return RedirectResponse(f"{checkout_url}?error=cart_not_found")
    except ConflictError as exc:
        logger.warning("paypal_return_conflict", cart_id=cart_id, error=exc.message)
        return RedirectResponse(f"{checkout_url}?error=cart_update_failed")

    return RedirectResponse(f"{checkout_url}/thank-you")


@payment_router.post("/razorpay/confirm", response_model=PaymentConfirmationResponse)
def confirm_razorpay_payment(
    body: RazorpayConfirmRequest,
    adapter: GatewayResultAdapter = Depends(get_result_adapter),
) -> PaymentConfirmationResponse:
    """Razorpay checkout widget relays the signed payment confirmation here."""
    event = GatewayEvent(
        kind=EventKind.CLIENT_CONFIRM,
        provider="razorpay",
        payload={
            "cart_id": body.cart_id,
            "order_id": body.order_id,
            "payment_id": body.payment_id,
            "signature": body.signature,
            "method": body.method,
        },
    )
    update = adapter.handle(event)
    cart = update.cart
    return PaymentConfirmationResponse(
        message="Payment confirmed" if update.changed else "Payment already confirmed",
        cart_id=str(cart.id),
        status=cart.payment.status,
        signup_token=cart.signup_token,
        email_error=update.email_warning,
    )


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
def configure_gateway(
    body: ConfigureGatewayRequest,
    settings: CheckoutSettings = Depends(get_checkout_settings),
):
    """Configure the FakeGateway behavior (fake gateway mode only)."""
    if settings.gateway_mode != "fake":
        return error_response(403, "Gateway configuration is only available in fake gateway mode")

    try:
        gateway = get_gateway(body.provider, settings)
    except ValueError as exc:
        raise ValidationError({"provider": [str(exc)]}) from exc
    if not isinstance(gateway, FakeGateway):
        return error_response(400, "Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        provider=body.provider,
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
def _receive_webhook(
    provider: str,
    raw_body: bytes,
    request: Request,
    adapter: GatewayResultAdapter,
) -> AcknowledgedResponse:
    try:
        payload = json.loads(raw_body or b"{}")
    except json.JSONDecodeError as exc:
        raise ValidationError({"body": ["Webhook body is not valid JSON"]}) from exc

    event = GatewayEvent(
        kind=EventKind.WEBHOOK,
        provider=provider,
        payload=payload,
        raw_body=raw_body,
        headers=dict(request.headers),
    )
    try:
        update = adapter.handle(event)
    except ConflictError as exc:
        # A late event for a settled cart; acknowledge so the gateway stops retrying
        logger.warning("webhook_conflict_ignored", provider=provider, error=exc.message)
        return AcknowledgedResponse(message="Event ignored")

    if update is None:
        return AcknowledgedResponse(message="Event ignored")
    return AcknowledgedResponse(message="Event processed")


@webhook_router.post("/razorpay", response_model=AcknowledgedResponse)
def razorpay_webhook(
    request: Request,
    raw_body: bytes = Depends(read_raw_body),
    adapter: GatewayResultAdapter = Depends(get_result_adapter),
) -> AcknowledgedResponse:
    return _receive_webhook("razorpay", raw_body, request, adapter)


@webhook_router.post("/paypal", response_model=AcknowledgedResponse)
def paypal_webhook(
    request: Request,
    raw_body: bytes = Depends(read_raw_body),
    adapter: GatewayResultAdapter = Depends(get_result_adapter),
) -> AcknowledgedResponse:
    return _receive_webhook("paypal", raw_body, request, adapter)


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@coupon_router.post("", status_code=201, response_model=CouponEnvelope, dependencies=[Depends(require_partner_key)])
async def create_coupon(body: CreateCouponRequest) -> CouponEnvelope:
    command = CreateCoupon(
        code=body.code,
        coupon_type=body.coupon_type,
        value=body.value,
        max_discount=body.max_discount,
        min_order_amount=body.min_order_amount,
        start_date=body.start_date,
        expires_at=body.expires_at,
        usage_limit=body.usage_limit,
        description=body.description,
        affiliate=body.affiliate,
    )
    coupon_id = current_domain.process(command, asynchronous=False)
    coupon = current_domain.repository_for(Coupon).get(coupon_id)
    return CouponEnvelope(coupon=CouponView.from_coupon(coupon))


@coupon_router.get("/{code}", response_model=CouponEnvelope)
async def get_coupon(code: str) -> CouponEnvelope:
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    if coupon is None:
        raise ObjectNotFoundError(f"Coupon {code} not found")
    return CouponEnvelope(coupon=CouponView.from_coupon(coupon))


@coupon_router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(body: ValidateCouponRequest):
    """Check a code before checkout and preview the discount for an amount."""
    evaluator = CouponEvaluator()
    result = evaluator.validate(body.code, base_amount=body.amount)
    if not result.valid:
        status_code = 404 if result.reason == INVALID_CODE else 400
        return error_response(status_code, f"Coupon {result.reason}", result.reason)

    discount = final = None
    if body.amount is not None:
        discount = evaluator.apply(result.coupon, body.amount)
        if body.currency:
            final = evaluator.total_after_discount(body.amount, discount, body.currency)
    return CouponValidationResponse(
        coupon=CouponView.from_coupon(result.coupon),
        discount_amount=discount,
        final_amount=final,
    )


@coupon_router.post(
    "/{code}/deactivate",
    response_model=AcknowledgedResponse,
    dependencies=[Depends(require_partner_key)],
)
async def deactivate_coupon(code: str) -> AcknowledgedResponse:
    current_domain.process(DeactivateCoupon(code=code), asynchronous=False)
    return AcknowledgedResponse(message=f"Coupon {code.upper()} deactivated")


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------
@plan_router.get("", response_model=PlanListResponse)
async def list_plans() -> PlanListResponse:
    return PlanListResponse(plans=[PlanView.from_plan(plan) for plan in PlanCatalog().active_plans()])


@plan_router.get("/{name}", response_model=PlanEnvelope)
async def get_plan(name: str) -> PlanEnvelope:
    plan = PlanCatalog().resolve(name)
    if plan is None:
        raise ObjectNotFoundError(f"Plan {name} not found")
    return PlanEnvelope(plan=PlanView.from_plan(plan))


@plan_router.post("/seed", response_model=SeedPlansResponse, dependencies=[Depends(require_partner_key)])
async def seed_plans(body: SeedPlansRequest | None = None) -> SeedPlansResponse:
    update_existing = body.update_existing if body else True
    created = current_domain.process(SeedPlans(update_existing=update_existing), asynchronous=False)
    return SeedPlansResponse(message="Plans seeded", created=created or 0)

