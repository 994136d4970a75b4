"""Checkout-specific exceptions.

Input problems use protean's ``ValidationError`` and missing records use
``ObjectNotFoundError``; the classes here cover the remaining failure modes.
Each one maps to a single HTTP status in ``checkout.api.errors``.
"""


class CheckoutError(Exception):
    """Base class for checkout failures that carry a user-facing message."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class AuthenticationError(CheckoutError):
    """Missing/invalid partner key or a gateway signature that failed verification."""


class SignupTokenExpired(CheckoutError):
    """The signup token is past its expiry."""


class SignupTokenInvalid(CheckoutError):
    """The signup token is malformed or was not signed by this service."""


class ConflictError(CheckoutError):
    """An illegal state transition, e.g. completing an already completed signup."""


class UpstreamGatewayError(CheckoutError):
    """A payment gateway call failed or reported a non-success status."""


class ConfigurationError(CheckoutError):
    """A required secret or endpoint is not configured."""
