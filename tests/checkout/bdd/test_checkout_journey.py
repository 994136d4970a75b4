"""BDD tests for the plan checkout journey."""

from checkout.exceptions import ConflictError
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/checkout_journey.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('the visitor checks out the free plan in "{currency}"'),
    target_fixture="cart",
)
def checkout_free_plan(service, buyer, currency):
    return service.create_cart(
        plan="free",
        billing_cycle="monthly",
        amount=0,
        currency=currency,
        user_details=buyer,
        gateway="free-india",
    ).cart


@when("the visitor tries to resume the cart")
def resume_cart(service, cart, error):
    try:
        service.load_cart_for_resumption(str(cart.id))
    except ConflictError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the signup token is unchanged")
def token_unchanged(service, cart, journey):
    assert service.get_cart_by_id(str(cart.id)).signup_token == journey["signup_token"]
