import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import (
    cart_router,
    checkout_router,
    guest_router,
    inventory_router,
    location_router,
    order_router,
    payment_webhook_router,
)
from ordering.api.errors import register_checkout_exception_handlers
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client(inventory, directory, gateway, ledger, captcha):
    app = FastAPI()
    for router in (
        cart_router,
        location_router,
        inventory_router,
        guest_router,
        checkout_router,
        payment_webhook_router,
        order_router,
    ):
        app.include_router(router)
    register_exception_handlers(app)
    register_checkout_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def add_item(client):
    """Helper: POST /carts/{cart_key}/items and return the JSON body."""

    def _add(cart_key, product_id, quantity=1, options=None, location_id="loc-north"):
        response = client.post(
            f"/carts/{cart_key}/items",
            json={
                "product_id": product_id,
                "quantity": quantity,
                "options": options or {},
                "location_id": location_id,
            },
        )
        assert response.status_code == 200
        return response.json()

    return _add
