"""Checkout FastAPI application.

Processes carts, payments and the signup handoff synchronously via HTTP.
Every request runs inside the checkout domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay and, with ENVIRONMENT, the log renderer.
from checkout.domain import checkout  # noqa: E402
from checkout.utils.logging import bind_request_context, clear_request_context
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

checkout.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Plan Checkout API",
    description="Subscription checkout: carts, payments, coupons and the signup handoff",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the checkout domain context for each request and tag its log lines."""
    bind_request_context(method=request.method, path=request.url.path)
    try:
        with checkout.domain_context():
            response = await call_next(request)
    finally:
        clear_request_context()
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from checkout.api import (  # noqa: E402
    cart_router,
    coupon_router,
    payment_router,
    plan_router,
    register_checkout_exception_handlers,
    signup_router,
    webhook_router,
)

app.include_router(cart_router)
app.include_router(signup_router)
app.include_router(payment_router)
app.include_router(webhook_router)
app.include_router(coupon_router)
app.include_router(plan_router)

register_checkout_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "success": True,
            "status": "ok",
            "domains": {"checkout": {"name": checkout.name}},
        }
    )
