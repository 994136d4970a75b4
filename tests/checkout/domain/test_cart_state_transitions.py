"""Tests for Cart payment-state transitions and the signup handoff."""

from datetime import UTC, datetime, timedelta

import pytest
from checkout.cart.cart import Cart, PaymentStatus, PostalAddress, Purchaser
from checkout.cart.events import (
    CartPaymentCancelled,
    CartPaymentCompleted,
    CartPaymentFailed,
    CartResumed,
    GatewayOrderAttached,
    SignupCompleted,
)
from checkout.exceptions import ConflictError, SignupTokenExpired
from checkout.signup.tokens import SignupTokenIssuer
from protean.exceptions import ValidationError

TOKENS = SignupTokenIssuer(secret="domain-test-secret")


def _cart(**overrides):
    defaults = {
        "purchaser": Purchaser(
            name="Asha Rao",
            email="asha@example.com",
            address=PostalAddress(street="12 MG Road", city="Bengaluru", country="India", postal_code="560001"),
        ),
        "plan": "pro",
        "billing_cycle": "monthly",
        "plan_amount": 999.0,
        "currency": "INR",
        "gateway": "razorpay",
    }
    defaults.update(overrides)
    return Cart.create(**defaults)


def _completed_cart(**overrides):
    cart = _cart(**overrides)
    cart.complete(TOKENS, transaction_id="pay_txn_1", payment_method="upi")
    return cart


class TestCompletion:
    def test_completion_sets_dates_and_mints_token(self):
        cart = _cart()
        now = datetime(2025, 1, 31, 9, 0, tzinfo=UTC)

        changed = cart.complete(TOKENS, transaction_id="pay_txn_1", payment_method="upi", now=now)

        assert changed is True
        assert cart.status == PaymentStatus.COMPLETED
        assert cart.payment.transaction_id == "pay_txn_1"
        assert cart.payment.payment_method == "upi"
        assert cart.subscription.is_active is True
        assert cart.subscription.start_date == now
        assert cart.subscription.end_date == datetime(2025, 2, 28, 9, 0, tzinfo=UTC)
        assert cart.signup_token
        assert cart.token_expiry == now + timedelta(hours=24)

    def test_yearly_end_date(self):
        cart = _cart(billing_cycle="yearly", plan_amount=9590.0)
        now = datetime(2025, 6, 1, tzinfo=UTC)
        cart.complete(TOKENS, transaction_id="pay_txn_1", now=now)
        assert cart.subscription.end_date == datetime(2026, 6, 1, tzinfo=UTC)

    def test_completion_raises_event(self):
        cart = _completed_cart()
        event = cart._events[-1]
        assert isinstance(event, CartPaymentCompleted)
        assert event.transaction_id == "pay_txn_1"
        assert event.token_expiry == cart.token_expiry

    def test_repeat_completion_is_a_no_op(self):
        cart = _completed_cart()
        token, start, end = cart.signup_token, cart.subscription.start_date, cart.subscription.end_date
        events = len(cart._events)

        changed = cart.complete(TOKENS, transaction_id="pay_txn_2", now=datetime.now(UTC) + timedelta(days=3))

        assert changed is False
        assert cart.signup_token == token
        assert cart.subscription.start_date == start
        assert cart.subscription.end_date == end
        assert cart.payment.transaction_id == "pay_txn_1"
        assert len(cart._events) == events

    def test_paid_cart_needs_transaction_id(self):
        cart = _cart()
        with pytest.raises(ValidationError) as exc:
            cart.complete(TOKENS)
        assert "transaction_id" in exc.value.messages
        assert cart.status == PaymentStatus.PENDING
        assert cart.signup_token is None

    def test_free_plan_completes_without_end_date(self):
        cart = _cart(plan="free", plan_amount=0.0, gateway="free-india")
        cart.complete(TOKENS, now=cart.created_at)

        assert cart.is_completed
        assert cart.subscription.start_date == cart.created_at
        assert cart.subscription.end_date is None
        assert cart.signup_token

    def test_failed_cart_cannot_capture_until_resumed(self):
        cart = _cart()
        cart.fail(transaction_id="pay_attempt_1")

        with pytest.raises(ConflictError, match="failed to completed"):
            cart.complete(TOKENS, transaction_id="pay_attempt_2")
        assert cart.status == PaymentStatus.FAILED
        assert cart.signup_token is None

        assert cart.resume() is True
        assert cart.complete(TOKENS, transaction_id="pay_attempt_2") is True
        assert cart.is_completed


class TestFailureAndCancellation:
    def test_fail_pending_cart(self):
        cart = _cart()
        assert cart.fail(transaction_id="pay_x", payment_method="card") is True
        assert cart.status == PaymentStatus.FAILED
        assert cart.subscription.start_date is None
        assert cart.signup_token is None
        assert isinstance(cart._events[-1], CartPaymentFailed)

    def test_cancel_pending_cart(self):
        cart = _cart()
        assert cart.cancel() is True
        assert cart.status == PaymentStatus.CANCELLED
        assert isinstance(cart._events[-1], CartPaymentCancelled)

    def test_repeat_failure_is_a_no_op(self):
        cart = _cart()
        cart.fail()
        assert cart.fail() is False

    def test_completed_cart_cannot_fail(self):
        cart = _completed_cart()
        with pytest.raises(ConflictError, match="already completed"):
            cart.fail()
        assert cart.is_completed

    def test_completed_cart_cannot_be_cancelled(self):
        cart = _completed_cart()
        with pytest.raises(ConflictError):
            cart.cancel()

    def test_cancelled_cart_cannot_complete(self):
        cart = _cart()
        cart.cancel()
        with pytest.raises(ConflictError):
            cart.complete(TOKENS, transaction_id="pay_txn_1")


class TestRecordPaymentStatus:
    def test_dispatches_completion(self):
        cart = _cart()
        assert cart.record_payment_status("completed", TOKENS, transaction_id="pay_txn_1") is True
        assert cart.is_completed

    def test_completed_to_pending_rejected(self):
        cart = _completed_cart()
        token = cart.signup_token
        with pytest.raises(ConflictError):
            cart.record_payment_status("pending", TOKENS)
        assert cart.is_completed
        assert cart.signup_token == token

    def test_pending_to_pending_is_a_no_op(self):
        assert _cart().record_payment_status("pending", TOKENS) is False

    def test_failed_to_pending_needs_resumption(self):
        cart = _cart()
        cart.fail()
        with pytest.raises(ConflictError):
            cart.record_payment_status("pending", TOKENS)

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            _cart().record_payment_status("refunded", TOKENS)


class TestResumeAndGatewayOrder:
    def test_resume_failed_cart(self):
        cart = _cart()
        cart.attach_gateway_order("order_1")
        cart.fail()

        assert cart.resume() is True
        assert cart.status == PaymentStatus.PENDING
        assert cart.payment.gateway_order_id is None
        assert isinstance(cart._events[-1], CartResumed)
        assert cart._events[-1].previous_status == "failed"

    def test_resume_pending_cart_is_a_no_op(self):
        assert _cart().resume() is False

    def test_resume_completed_cart_rejected(self):
        with pytest.raises(ConflictError):
            _completed_cart().resume()

    def test_attach_gateway_order(self):
        cart = _cart()
        cart.attach_gateway_order("order_1")
        assert cart.payment.gateway_order_id == "order_1"
        assert isinstance(cart._events[-1], GatewayOrderAttached)

    def test_attach_gateway_order_to_completed_cart_rejected(self):
        with pytest.raises(ConflictError):
            _completed_cart().attach_gateway_order("order_2")


class TestSignupCompletion:
    def test_complete_signup(self):
        cart = _completed_cart()
        cart.complete_signup()
        assert cart.is_signup_completed is True
        assert isinstance(cart._events[-1], SignupCompleted)

    def test_second_completion_rejected(self):
        cart = _completed_cart()
        cart.complete_signup()
        with pytest.raises(ConflictError):
            cart.complete_signup()

    def test_expired_token_rejected(self):
        cart = _completed_cart()
        with pytest.raises(SignupTokenExpired):
            cart.complete_signup(now=cart.token_expiry + timedelta(seconds=1))
        assert cart.is_signup_completed is False

    def test_pending_cart_has_no_signup(self):
        with pytest.raises(ConflictError):
            _cart().complete_signup()

    def test_token_expired_helper(self):
        cart = _completed_cart()
        assert cart.token_expired() is False
        assert cart.token_expired(cart.token_expiry) is True
        assert _cart().token_expired() is True
