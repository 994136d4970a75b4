"""Shared BDD fixtures and step definitions for the Checkout domain."""

import pytest
from checkout.cart.cart import Cart
from checkout.catalog.seed import SeedPlans
from checkout.exceptions import ConflictError, SignupTokenExpired
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def error():
    """Container for the exception a When step expects to be raised."""
    return {"exc": None}


@pytest.fixture()
def journey():
    """Values remembered between steps."""
    return {}


def _stored(cart):
    return current_domain.repository_for(Cart).get(cart.id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the standard plans are seeded")
def seed_plans():
    current_domain.process(SeedPlans(), asynchronous=False)


@given(
    parsers.cfparse('a pending "{plan}" "{cycle}" cart paid in "{currency}" through "{gateway}"'),
    target_fixture="cart",
)
def pending_cart(service, buyer, us_buyer, plan, cycle, currency, gateway):
    quote = service.catalog.quote(plan, cycle, currency)
    return service.create_cart(
        plan=plan,
        billing_cycle=cycle,
        amount=quote.amount,
        currency=currency,
        user_details=buyer if currency == "INR" else us_buyer,
        gateway=gateway,
    ).cart


@given(parsers.cfparse('the gateway reports the payment "{transaction_id}" as "{status}"'))
@when(parsers.cfparse('the gateway reports the payment "{transaction_id}" as "{status}"'))
def gateway_reports(service, cart, journey, transaction_id, status):
    update = service.update_cart_payment(str(cart.id), status, transaction_id=transaction_id)
    journey.setdefault("signup_token", update.cart.signup_token)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the cart payment status is "{status}"'))
def cart_status_is(cart, status):
    assert _stored(cart).payment.status == status


@then("the subscription is active")
def subscription_active(cart):
    subscription = _stored(cart).subscription
    assert subscription.is_active is True
    assert subscription.start_date is not None
    assert subscription.end_date > subscription.start_date


@then("the subscription has no end date")
def subscription_open_ended(cart):
    assert _stored(cart).subscription.end_date is None


@then("the cart has a signup token")
def has_signup_token(cart):
    stored = _stored(cart)
    assert stored.signup_token
    assert stored.token_expiry is not None


@then("the cart has no signup token")
def has_no_signup_token(cart):
    assert _stored(cart).signup_token is None


@then(parsers.cfparse('a welcome email was sent to "{email}"'))
def welcome_email_sent(mailer, email):
    assert [sent.to for sent in mailer.sent] == [email]


@then(parsers.cfparse("{count:d} welcome email was sent"))
def welcome_email_count(mailer, count):
    assert len(mailer.sent) == count


@then("the request is rejected as a conflict")
def rejected_as_conflict(error):
    assert isinstance(error["exc"], ConflictError)


@then("the request is rejected because the token expired")
def rejected_as_expired(error):
    assert isinstance(error["exc"], SignupTokenExpired)
