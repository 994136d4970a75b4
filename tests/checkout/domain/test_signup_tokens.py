"""Tests for signup token generation and validation."""

from datetime import UTC, datetime, timedelta

import pytest
from checkout.config import CheckoutSettings
from checkout.exceptions import SignupTokenExpired, SignupTokenInvalid
from checkout.signup.tokens import SignupTokenIssuer
from jose import jwt

SECRET = "token-test-secret"


@pytest.fixture()
def issuer():
    return SignupTokenIssuer(secret=SECRET)


class TestGenerate:
    def test_token_carries_claims(self, issuer):
        issued = issuer.generate(email="asha@example.com", plan="pro", cart_id="cart-1")
        claims = issuer.validate(issued.token)

        assert claims.email == "asha@example.com"
        assert claims.plan == "pro"
        assert claims.cart_id == "cart-1"
        assert claims.token_id
        assert claims.expires_at == issued.expires_at

    def test_expiry_is_24_hours_after_issue(self, issuer):
        now = datetime.now(UTC).replace(microsecond=0)
        issued = issuer.generate(email="a@example.com", plan="pro", cart_id="cart-1", now=now)
        assert issued.expires_at == now + timedelta(hours=24)

    def test_tokens_are_unique(self, issuer):
        first = issuer.generate(email="a@example.com", plan="pro", cart_id="cart-1")
        second = issuer.generate(email="a@example.com", plan="pro", cart_id="cart-1")
        assert first.token != second.token

    def test_from_settings(self):
        settings = CheckoutSettings(_env_file=None, signup_token_secret="settings-secret", signup_token_validity_hours=2)
        issuer = SignupTokenIssuer.from_settings(settings)
        assert issuer.secret == "settings-secret"
        assert issuer.validity == timedelta(hours=2)


class TestValidate:
    def test_expired_token(self, issuer):
        issued = issuer.generate(
            email="a@example.com",
            plan="pro",
            cart_id="cart-1",
            now=datetime.now(UTC) - timedelta(hours=25),
        )
        with pytest.raises(SignupTokenExpired):
            issuer.validate(issued.token)

    def test_token_signed_with_another_secret(self, issuer):
        other = SignupTokenIssuer(secret="some-other-secret")
        issued = other.generate(email="a@example.com", plan="pro", cart_id="cart-1")
        with pytest.raises(SignupTokenInvalid):
            issuer.validate(issued.token)

    def test_garbage_token(self, issuer):
        with pytest.raises(SignupTokenInvalid):
            issuer.validate("not-a-token")

    def test_token_of_another_type(self, issuer):
        now = datetime.now(UTC)
        token = jwt.encode(
            {"type": "session", "cart_id": "cart-1", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(SignupTokenInvalid):
            issuer.validate(token)
