"""Tests for applying gateway payment statuses to carts."""

import gc

import pytest
from checkout.cart.cart import Cart, PaymentStatus
from checkout.cart.lifecycle import CartLifecycleService, _cart_locks, _lock_for
from checkout.coupon.coupon import Coupon
from checkout.coupon.management import CreateCoupon
from checkout.exceptions import ConflictError
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain


@pytest.fixture()
def cart(service, buyer):
    return service.create_cart(
        plan="pro",
        billing_cycle="monthly",
        amount=999,
        currency="INR",
        user_details=buyer,
        gateway="razorpay",
    ).cart


def _stored(cart_id):
    return current_domain.repository_for(Cart).get(cart_id)


class TestCompletion:
    def test_completion_activates_subscription(self, service, cart, mailer):
        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123", payment_method="upi")

        assert update.changed is True
        assert update.email_warning is None
        stored = _stored(cart.id)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.payment.transaction_id == "pay_123"
        assert stored.subscription.is_active is True
        assert stored.signup_token
        assert stored.token_expiry is not None

        assert len(mailer.sent) == 1
        assert mailer.signup_links() == [f"https://signup.test/signup/{stored.signup_token}"]

    def test_repeat_completion_is_idempotent(self, service, cart, mailer):
        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123")
        first = _stored(cart.id)

        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_456")

        assert update.changed is False
        second = _stored(cart.id)
        assert second.signup_token == first.signup_token
        assert second.subscription.start_date == first.subscription.start_date
        assert second.payment.transaction_id == "pay_123"
        assert len(mailer.sent) == 1

    def test_email_failure_keeps_completion(self, service, cart, mailer):
        mailer.fail_next()

        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123")

        assert update.changed is True
        assert update.email_warning == "Email delivery failed"
        assert _stored(cart.id).is_completed

    def test_completion_without_transaction_id_rejected(self, service, cart):
        with pytest.raises(ValidationError):
            service.update_cart_payment(str(cart.id), "completed")
        assert _stored(cart.id).status == PaymentStatus.PENDING


class TestCouponRedemption:
    def test_coupon_redeemed_once_on_completion(self, service, buyer, plans):
        current_domain.process(CreateCoupon(code="SAVE20", value=20), asynchronous=False)
        cart = service.create_cart(
            plan="pro",
            billing_cycle="monthly",
            amount=799,
            currency="INR",
            user_details=buyer,
            gateway="razorpay",
            coupon_code="SAVE20",
        ).cart

        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_1")
        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_1")

        coupon = current_domain.repository_for(Coupon).find_by_code("SAVE20")
        assert coupon.used_count == 1

    def test_exhausted_coupon_does_not_block_completion(self, service, buyer, plans):
        current_domain.process(CreateCoupon(code="ONCE", value=10, usage_limit=1), asynchronous=False)
        carts = [
            service.create_cart(
                plan="pro",
                billing_cycle="monthly",
                amount=899,
                currency="INR",
                user_details=buyer,
                gateway="razorpay",
                coupon_code="ONCE",
            ).cart
            for _ in range(2)
        ]

        for index, cart in enumerate(carts):
            service.update_cart_payment(str(cart.id), "completed", transaction_id=f"pay_{index}")

        assert all(_stored(cart.id).is_completed for cart in carts)
        assert current_domain.repository_for(Coupon).find_by_code("ONCE").used_count == 1


class TestOtherStatuses:
    def test_failure(self, service, cart):
        update = service.update_cart_payment(str(cart.id), "failed", transaction_id="pay_x")
        assert update.changed is True
        assert _stored(cart.id).status == PaymentStatus.FAILED

    def test_cancellation(self, service, cart):
        service.update_cart_payment(str(cart.id), "cancelled")
        assert _stored(cart.id).status == PaymentStatus.CANCELLED

    def test_completed_cart_cannot_go_back_to_pending(self, service, cart):
        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123")
        token = _stored(cart.id).signup_token

        with pytest.raises(ConflictError):
            service.update_cart_payment(str(cart.id), "pending")

        stored = _stored(cart.id)
        assert stored.is_completed
        assert stored.signup_token == token

    def test_capture_on_failed_cart_is_rejected(self, service, cart, mailer):
        service.update_cart_payment(str(cart.id), "failed", transaction_id="pay_x")

        with pytest.raises(ConflictError):
            service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_late")

        stored = _stored(cart.id)
        assert stored.status == PaymentStatus.FAILED
        assert stored.signup_token is None
        assert mailer.sent == []

    def test_resumed_cart_can_complete(self, service, cart):
        service.update_cart_payment(str(cart.id), "failed", transaction_id="pay_x")
        service.load_cart_for_resumption(str(cart.id))

        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_retry")

        assert update.changed is True
        assert _stored(cart.id).payment.transaction_id == "pay_retry"

    def test_completed_cart_cannot_fail(self, service, cart):
        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123")
        with pytest.raises(ConflictError):
            service.update_cart_payment(str(cart.id), "failed")

    def test_unknown_status_rejected(self, service, cart):
        with pytest.raises(ValidationError) as exc:
            service.update_cart_payment(str(cart.id), "refunded")
        assert "status" in exc.value.messages

    def test_unknown_cart(self, service):
        with pytest.raises(ObjectNotFoundError):
            service.update_cart_payment("missing-cart", "completed", transaction_id="pay_1")


class TestConcurrentUpdates:
    def test_lost_race_is_treated_as_repeat_delivery(self, settings, mailer, cart, monkeypatch):
        """A completion that lands between our read and our write wins; ours becomes a no-op."""
        service = CartLifecycleService(settings, mailer=mailer)
        repo_cls = type(current_domain.repository_for(Cart))
        original_find = repo_cls.find_by_id
        raced = {"done": False}

        def find_then_race(repo, cart_id):
            found = original_find(repo, cart_id)
            if not raced["done"]:
                raced["done"] = True
                winner = repo.get(cart_id)
                winner.complete(service.tokens, transaction_id="pay_winner")
                repo.add(winner)
            return found

        monkeypatch.setattr(repo_cls, "find_by_id", find_then_race)
        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_loser")

        assert update.changed is False
        assert _stored(cart.id).payment.transaction_id == "pay_winner"

    def test_write_conflict_inside_swap_is_a_repeat_delivery(self, settings, mailer, cart, monkeypatch):
        """A completion committed between the swap's read and its write makes ours a no-op."""
        service = CartLifecycleService(settings, mailer=mailer)
        repo_cls = type(current_domain.repository_for(Cart))
        original_get = repo_cls.get
        raced = {"done": False}

        def get_then_race(repo, cart_id):
            found = original_get(repo, cart_id)
            if not raced["done"]:
                raced["done"] = True
                winner = original_get(repo, cart_id)
                winner.complete(service.tokens, transaction_id="pay_winner")
                repo.add(winner)
            return found

        monkeypatch.setattr(repo_cls, "get", get_then_race)
        update = service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_loser")

        assert raced["done"] is True
        assert update.changed is False
        assert update.cart.payment.transaction_id == "pay_winner"
        assert _stored(cart.id).payment.transaction_id == "pay_winner"
        assert mailer.sent == []


class TestCartLocks:
    def test_same_cart_shares_one_lock(self):
        first = _lock_for("cart-lock-1")
        assert _lock_for("cart-lock-1") is first
        assert _lock_for("cart-lock-2") is not first

    def test_lock_is_dropped_once_released(self, service, cart):
        service.update_cart_payment(str(cart.id), "completed", transaction_id="pay_123")
        gc.collect()

        assert str(cart.id) not in _cart_locks
