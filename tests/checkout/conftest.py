import pytest
from checkout.cart.lifecycle import CartLifecycleService
from checkout.catalog.seed import SeedPlans
from checkout.config import CheckoutSettings, reset_settings, set_settings
from checkout.gateway import get_gateway, reset_gateways
from checkout.mail import reset_mailer, set_mailer
from checkout.mail.fake_email import FakeMailer
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

PARTNER_KEY = "partner-test-key"


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


@pytest.fixture()
def settings():
    return CheckoutSettings(
        _env_file=None,
        base_url="https://shop.test",
        signup_url_base="https://signup.test/signup",
        partner_api_key=PARTNER_KEY,
        signup_token_secret="test-signup-secret",
        gateway_mode="fake",
        email_provider="fake",
        razorpay_key_id="rzp_test_key",
    )


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture(autouse=True)
def _adapters(settings, mailer):
    """Each test gets fresh settings, fake gateways and a recording mailer."""
    set_settings(settings)
    set_mailer(mailer)
    reset_gateways()
    yield
    reset_settings()
    reset_mailer()
    reset_gateways()


@pytest.fixture()
def service(settings, mailer):
    return CartLifecycleService(settings, mailer=mailer)


@pytest.fixture()
def plans():
    current_domain.process(SeedPlans(), asynchronous=False)


@pytest.fixture()
def razorpay():
    return get_gateway("razorpay")


@pytest.fixture()
def paypal():
    return get_gateway("paypal")


@pytest.fixture()
def buyer():
    return {
        "name": "Asha Rao",
        "email": "Asha@Example.com",
        "address": {
            "street": "12 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "country": "India",
            "postal_code": "560001",
        },
    }


@pytest.fixture()
def us_buyer():
    return {
        "first_name": "Sam",
        "last_name": "Lee",
        "email": "sam@example.com",
        "address": {
            "street": "1 Market St",
            "city": "San Francisco",
            "state": "CA",
            "country": "United States",
            "postal_code": "94105",
        },
        "business": {"company": "Lee Labs", "tax_id": "US-123"},
    }


@pytest.fixture()
def partner_headers():
    return {"Authorization": f"Bearer {PARTNER_KEY}"}
