"""Ordering domain API package."""

from ordering.api.routes import (
    cart_router,
    checkout_router,
    guest_router,
    inventory_router,
    location_router,
    order_router,
    payment_webhook_router,
)

__all__ = [
    "cart_router",
    "location_router",
    "inventory_router",
    "guest_router",
    "checkout_router",
    "payment_webhook_router",
    "order_router",
]
