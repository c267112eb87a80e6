"""Ordering FastAPI application.

Web server for the cart and checkout engine. Commands are processed
synchronously; each request is wrapped in the ordering domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from ``[tool.protean]``.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from ordering.domain import ordering  # noqa: E402
from ordering.utils.logging import bind_request_context, clear_request_context
from payments.gateway import get_gateway
from protean.integrations.fastapi import register_exception_handlers

ordering.init()

# PAYMENT_GATEWAY picks the adapter now, so a missing Stripe key fails at startup
get_gateway()

# ---------------------------------------------------------------------------
# Route-to-domain mapping
# ---------------------------------------------------------------------------
_ROUTE_DOMAIN_MAP = {
    "/carts": ordering,
    "/locations": ordering,
    "/inventory": ordering,
    "/guest-authorizations": ordering,
    "/checkout": ordering,
    "/payments": ordering,
    "/orders": ordering,
}


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    for prefix, domain in _ROUTE_DOMAIN_MAP.items():
        if path.startswith(prefix):
            return domain
    return None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Ordering API",
    description="Meal ordering: cart consistency and checkout settlement",
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
    """Push the ordering domain context for domain routes."""
    domain = _resolve_domain(request.url.path)
    if domain is not None:
        bind_request_context(method=request.method, path=request.url.path)
        try:
            with domain.domain_context():
                response = await call_next(request)
        finally:
            clear_request_context()
        return response
    # No domain match: pass through (health check, docs, etc.)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from ordering.api import (  # noqa: E402
    cart_router,
    checkout_router,
    guest_router,
    inventory_router,
    location_router,
    order_router,
    payment_webhook_router,
)
from ordering.api.errors import register_checkout_exception_handlers  # noqa: E402

app.include_router(cart_router)
app.include_router(location_router)
app.include_router(inventory_router)
app.include_router(guest_router)
app.include_router(checkout_router)
app.include_router(payment_webhook_router)
app.include_router(order_router)

register_exception_handlers(app)
register_checkout_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "ordering": {"name": ordering.name},
            },
        }
    )
