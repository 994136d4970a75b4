"""Exception handlers for the Checkout API.

Every error body has the shape ``{"success": false, "message": ..., "error": ...}``.
protean's own handlers are registered first so any framework error not
listed here still maps to a sensible status.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from checkout.domain import logger
from checkout.exceptions import (
    AuthenticationError,
    CheckoutError,
    ConfigurationError,
    ConflictError,
    SignupTokenExpired,
    SignupTokenInvalid,
    UpstreamGatewayError,
)

_STATUS_BY_ERROR = {
    AuthenticationError: 401,
    SignupTokenExpired: 401,
    SignupTokenInvalid: 401,
    ConflictError: 409,
    UpstreamGatewayError: 502,
    ConfigurationError: 500,
}

_DEFAULT_DETAIL = {
    AuthenticationError: "Unauthorized access",
    SignupTokenExpired: "The signup token has expired. Please generate a new one.",
    SignupTokenInvalid: "The signup token is not valid",
    ConflictError: "The requested change conflicts with the cart's current state",
    UpstreamGatewayError: "The payment gateway could not complete the request",
    ConfigurationError: "A required setting is not configured",
}


def error_response(status_code: int, message: str, error=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error if error is not None else message},
    )


def _first_message(messages: dict) -> str:
    for field, errors in messages.items():
        if errors:
            return f"{field}: {errors[0]}"
    return "Invalid request"


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return error_response(400, _first_message(exc.messages), exc.messages)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "header"))
        messages.setdefault(field or "request", []).append(error["msg"])
    return error_response(400, _first_message(messages), messages)


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    message = exc.args[0] if exc.args else "Not found"
    return error_response(404, str(message))


async def _checkout_error(request: Request, exc: CheckoutError) -> JSONResponse:
    status_code = next(
        (status for cls, status in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        500,
    )
    detail = exc.context.get("detail") or next(
        (text for cls, text in _DEFAULT_DETAIL.items() if isinstance(exc, cls)),
        exc.message,
    )
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, status=status_code)
    return error_response(status_code, exc.message, detail)


def register_checkout_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)

    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(CheckoutError, _checkout_error)
