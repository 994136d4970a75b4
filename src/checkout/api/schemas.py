"""Pydantic request/response schemas for the Checkout API.

The storefront and the signup partner speak camelCase JSON, so every schema
derives from ``CamelModel``: fields are snake_case in Python and camelCase
on the wire, and either spelling is accepted on input.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Request Schemas ---


class AddressIn(CamelModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = Field(
        None,
        validation_alias=AliasChoices("postalCode", "pincode", "postal_code"),
    )


class BusinessIn(CamelModel):
    company: str | None = None
    tax_id: str | None = Field(None, validation_alias=AliasChoices("gstin", "taxId", "tax_id"))


class UserDetailsIn(CamelModel):
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    address: AddressIn | None = None
    business: BusinessIn | None = None

    def as_details(self) -> dict:
        details = self.model_dump(exclude={"address", "business"})
        details["address"] = self.address.model_dump() if self.address else None
        details["business"] = self.business.model_dump() if self.business else None
        return details


class CreateCartRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "plan": "pro",
                    "billingCycle": "monthly",
                    "amount": 999,
                    "currency": "INR",
                    "paymentGateway": "razorpay",
                    "userDetails": {
                        "name": "Asha Rao",
                        "email": "asha@example.com",
                        "address": {
                            "street": "12 MG Road",
                            "city": "Bengaluru",
                            "state": "KA",
                            "country": "India",
                            "pincode": "560001",
                        },
                    },
                }
            ]
        },
    )

    plan: str
    billing_cycle: str = "monthly"
    amount: float = Field(..., ge=0)
    total_amount: float | None = None  # Accepted for compatibility; the server computes the total
    currency: str
    user_details: UserDetailsIn
    payment_gateway: str
    user_id: str | None = None
    coupon_code: str | None = Field(None, validation_alias=AliasChoices("coupon", "couponCode", "coupon_code"))


class UpdateCartRequest(CamelModel):
    cart_id: str
    status: str
    transaction_id: str | None = Field(
        None,
        validation_alias=AliasChoices("transactionId", "paymentId", "transaction_id"),
    )
    payment_method: str | None = None


class CompleteSignupRequest(CamelModel):
    signup_token: str = Field(..., min_length=1)


class CreateGatewayOrderRequest(CamelModel):
    cart_id: str
    return_url: str | None = None
    cancel_url: str | None = None


class RazorpayConfirmRequest(CamelModel):
    cart_id: str
    order_id: str = Field(..., validation_alias=AliasChoices("razorpayOrderId", "orderId", "order_id"))
    payment_id: str = Field(..., validation_alias=AliasChoices("razorpayPaymentId", "paymentId", "payment_id"))
    signature: str = Field(..., validation_alias=AliasChoices("razorpaySignature", "signature"))
    method: str | None = None


class ConfigureGatewayRequest(CamelModel):
    provider: str
    should_succeed: bool = True
    failure_reason: str = "Payment declined"


class CreateCouponRequest(CamelModel):
    code: str = Field(..., max_length=50)
    coupon_type: str = "percentage"
    value: float = Field(..., ge=0)
    max_discount: float | None = None
    min_order_amount: float | None = None
    start_date: datetime | None = None
    expires_at: datetime | None = Field(None, validation_alias=AliasChoices("expiresAt", "endDate", "expires_at"))
    usage_limit: int | None = Field(None, validation_alias=AliasChoices("usageLimit", "limit", "usage_limit"))
    description: str | None = None
    affiliate: str | None = None


class ValidateCouponRequest(CamelModel):
    code: str = Field(..., min_length=1)
    amount: float | None = None
    currency: str | None = None


class SeedPlansRequest(CamelModel):
    update_existing: bool = True


# --- Response Schemas ---


class AddressView(CamelModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    pincode: str | None = None


class BusinessView(CamelModel):
    company: str | None = None
    gstin: str | None = None


class UserView(CamelModel):
    name: str
    email: str
    address: AddressView | None = None
    business: BusinessView | None = None


class SubscriptionView(CamelModel):
    plan_name: str
    billing_cycle: str
    amount: float
    currency: str
    is_active: bool
    start_date: datetime | None = None
    end_date: datetime | None = None


class PaymentView(CamelModel):
    id: str
    method: str
    gateway_order_id: str | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    total_amount: float
    currency: str
    status: str


class CartView(CamelModel):
    id: str
    user_id: str | None = None
    user: UserView
    subscription: SubscriptionView
    payment: PaymentView
    coupon_code: str | None = None
    discount_amount: float | None = None
    signup_token: str | None = None
    token_expiry: datetime | None = None
    is_signup_completed: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_cart(cls, cart) -> CartView:
        purchaser = cart.purchaser
        address = purchaser.address
        business = None
        if purchaser.company or purchaser.tax_id:
            business = BusinessView(company=purchaser.company, gstin=purchaser.tax_id)
        return cls(
            id=str(cart.id),
            user_id=str(cart.user_id) if cart.user_id else None,
            user=UserView(
                name=purchaser.name,
                email=purchaser.email,
                address=AddressView(
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    country=address.country,
                    pincode=address.postal_code,
                )
                if address
                else None,
                business=business,
            ),
            subscription=SubscriptionView(
                plan_name=cart.subscription.plan,
                billing_cycle=cart.subscription.billing_cycle,
                amount=cart.subscription.plan_amount,
                currency=cart.subscription.currency,
                is_active=cart.subscription.is_active,
                start_date=cart.subscription.start_date,
                end_date=cart.subscription.end_date,
            ),
            payment=PaymentView(
                id=cart.payment.payment_id,
                method=cart.payment.gateway,
                gateway_order_id=cart.payment.gateway_order_id,
                payment_method=cart.payment.payment_method,
                transaction_id=cart.payment.transaction_id,
                total_amount=cart.payment.total_amount,
                currency=cart.payment.currency,
                status=cart.payment.status,
            ),
            coupon_code=cart.coupon_code,
            discount_amount=cart.discount_amount,
            signup_token=cart.signup_token,
            token_expiry=cart.token_expiry,
            is_signup_completed=bool(cart.is_signup_completed),
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )


class SignupUserView(CamelModel):
    name: str
    email: str


class SignupSubscriptionView(CamelModel):
    plan_name: str
    amount: float
    currency: str


class SignupCartView(CamelModel):
    """The trimmed cart returned once signup is complete."""

    id: str
    signup_token: str
    is_signup_completed: bool
    user: SignupUserView
    subscription: SignupSubscriptionView
    updated_at: datetime | None = None

    @classmethod
    def from_cart(cls, cart) -> SignupCartView:
        return cls(
            id=str(cart.id),
            signup_token=cart.signup_token,
            is_signup_completed=bool(cart.is_signup_completed),
            user=SignupUserView(name=cart.purchaser.name, email=cart.purchaser.email),
            subscription=SignupSubscriptionView(
                plan_name=cart.subscription.plan,
                amount=cart.payment.total_amount,
                currency=cart.payment.currency,
            ),
            updated_at=cart.updated_at,
        )


class CreateCartResponse(CamelModel):
    success: bool = True
    message: str
    cart_id: str
    payment_id: str
    status: str
    total_amount: float
    currency: str
    signup_token: str | None = None
    email_error: str | None = None


class CartEnvelope(CamelModel):
    success: bool = True
    message: str
    cart: CartView


class CartDataEnvelope(CamelModel):
    success: bool = True
    message: str
    data: CartView
    email_error: str | None = None


class SignupCompleteResponse(CamelModel):
    success: bool = True
    message: str
    cart: SignupCartView


class GatewayOrderResponse(CamelModel):
    success: bool = True
    cart_id: str
    provider: str
    order_id: str
    amount: float
    currency: str
    amount_minor: int | None = None
    approval_url: str | None = None
    key_id: str | None = None


class PaymentConfirmationResponse(CamelModel):
    success: bool = True
    message: str
    cart_id: str
    status: str
    signup_token: str | None = None
    email_error: str | None = None


class GatewayConfigResponse(CamelModel):
    success: bool = True
    provider: str
    gateway: str
    should_succeed: bool
    failure_reason: str


class AcknowledgedResponse(CamelModel):
    success: bool = True
    message: str = "ok"


class CouponView(CamelModel):
    code: str
    coupon_type: str
    value: float
    max_discount: float | None = None
    min_order_amount: float | None = None
    start_date: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    used_count: int = 0
    is_active: bool
    description: str | None = None

    @classmethod
    def from_coupon(cls, coupon) -> CouponView:
        return cls(
            code=coupon.code,
            coupon_type=coupon.coupon_type,
            value=coupon.value,
            max_discount=coupon.max_discount,
            min_order_amount=coupon.min_order_amount,
            start_date=coupon.start_date,
            expires_at=coupon.expires_at,
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count or 0,
            is_active=bool(coupon.is_active),
            description=coupon.description,
        )


class CouponEnvelope(CamelModel):
    success: bool = True
    coupon: CouponView


class CouponValidationResponse(CamelModel):
    success: bool = True
    valid: bool = True
    coupon: CouponView
    discount_amount: float | None = None
    final_amount: float | None = None


class PlanView(CamelModel):
    name: str
    plan_number: int | None = None
    display_name: str
    description: str | None = None
    monthly_price_usd: float
    monthly_price_inr: float
    yearly_price_usd: float
    yearly_price_inr: float
    yearly_discount_percent: float
    features: dict = Field(default_factory=dict)

    @classmethod
    def from_plan(cls, plan) -> PlanView:
        return cls(
            name=plan.name,
            plan_number=plan.plan_number,
            display_name=plan.display_name,
            description=plan.description,
            monthly_price_usd=plan.monthly_price_usd or 0.0,
            monthly_price_inr=plan.monthly_price_inr or 0.0,
            yearly_price_usd=plan.price_for("yearly", "USD"),
            yearly_price_inr=plan.price_for("yearly", "INR"),
            yearly_discount_percent=plan.yearly_discount_percent or 0.0,
            features=plan.feature_set(),
        )


class PlanListResponse(CamelModel):
    success: bool = True
    plans: list[PlanView]


class PlanEnvelope(CamelModel):
    success: bool = True
    plan: PlanView


class SeedPlansResponse(CamelModel):
    success: bool = True
    message: str
    created: int
