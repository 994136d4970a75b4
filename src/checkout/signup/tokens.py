"""Signup tokens: signed, expiring capabilities for the external signup flow.

A token binds {email, plan, cart_id} and is valid for a fixed window
(24 hours by default). Possession is enough to read the cart for signup and
to mark signup complete; it is not tied to any session.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt

from checkout.config import CheckoutSettings
from checkout.exceptions import SignupTokenExpired, SignupTokenInvalid

TOKEN_TYPE = "signup"


@dataclass(frozen=True)
class SignupClaims:
    email: str
    plan: str
    cart_id: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class SignupTokenIssuer:
    def __init__(self, secret: str, algorithm: str = "HS256", validity: timedelta = timedelta(hours=24)):
        self.secret = secret
        self.algorithm = algorithm
        self.validity = validity

    @classmethod
    def from_settings(cls, settings: CheckoutSettings) -> "SignupTokenIssuer":
        return cls(
            secret=settings.signup_token_secret,
            algorithm=settings.signup_token_algorithm,
            validity=timedelta(hours=settings.signup_token_validity_hours),
        )

    def generate(self, email: str, plan: str, cart_id: str, now: datetime | None = None) -> IssuedToken:
        """Mint a token for a completed cart.

        Args:
            email: Purchaser's email address.
            plan: Plan name the cart was bought for.
            cart_id: Identifier of the completed cart.
            now: Issue time; defaults to the current UTC time.

        Returns:
            The encoded token together with its absolute expiry.
        """
        issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
        expires_at = issued_at + self.validity
        payload = {
            "email": email,
            "plan": plan,
            "cart_id": str(cart_id),
            "jti": uuid4().hex,
            "type": TOKEN_TYPE,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def validate(self, token: str) -> SignupClaims:
        """Decode and verify a token.

        Raises:
            SignupTokenExpired: The token's expiry has passed.
            SignupTokenInvalid: The token is malformed, tampered with, or not a signup token.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise SignupTokenExpired("Signup token has expired") from exc
        except JWTError as exc:
            raise SignupTokenInvalid("Signup token is invalid") from exc

        if payload.get("type") != TOKEN_TYPE or not payload.get("cart_id"):
            raise SignupTokenInvalid("Signup token is invalid")

        return SignupClaims(
            email=payload.get("email", ""),
            plan=payload.get("plan", ""),
            cart_id=payload["cart_id"],
            token_id=payload.get("jti", ""),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )
