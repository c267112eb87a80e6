"""FastAPI routes for the Ordering domain: carts, locations, checkout and orders.

Handlers are plain functions: they wait on locks and on outside services, so
FastAPI runs them in its worker threads instead of on the event loop.
"""

import hmac
import json
import os
from dataclasses import asdict

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddCartItemRequest,
    AddCartItemResponse,
    AvailabilityResultSchema,
    CartLineSchema,
    CartResponse,
    CheckAvailabilityRequest,
    CheckAvailabilityResponse,
    CheckoutRequest,
    ConfigureGatewayRequest,
    ConfirmationResponse,
    ConfirmPaymentRequest,
    GatewayConfigResponse,
    GuestAuthorizationRequest,
    GuestAuthorizationSchema,
    LocationSchema,
    LocationSelectionResponse,
    OrderLineSchema,
    OrderPageResponse,
    OrderResponse,
    RebindPlanSchema,
    SelectLocationRequest,
    SetQuantityRequest,
    SettlementRequest,
    StatusResponse,
    SubmissionReceiptResponse,
)
from ordering.cart.pricing import format_option_label, to_decimal, to_storage
from ordering.cart.store import CartStore
from ordering.checkout.engine import GuestContact, SettlementEngine
from ordering.config import get_settings
from ordering.errors import LocationDirectoryUnavailable
from ordering.guest.issuance import IssueGuestAuthorization
from ordering.inventory.admission import AdmissionCheck
from ordering.inventory.port import AvailabilityRequest, InventoryServiceUnavailable
from ordering.location import get_directory
from ordering.location.guard import LocationBindingGuard, RebindPlan
from ordering.location.port import DirectoryUnavailable
from ordering.order.history import DEFAULT_PAGE_SIZE, get_order_for_user, orders_for_user
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------
def _cart_response(cart) -> CartResponse:
    return CartResponse(
        cart_key=cart.cart_key,
        bound_location_id=cart.bound_location_id,
        items=[
            CartLineSchema(
                identity_key=line.identity_key,
                product_id=str(line.product_id),
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=to_storage(line.unit_price()),
                line_total=to_storage(line.line_total()),
                options=line.option_labels(),
                notes=line.notes,
            )
            for line in cart.lines
        ],
        item_count=cart.item_count(),
        total=to_storage(cart.total()),
    )


def _order_response(draft) -> OrderResponse:
    lines = []
    for line in draft.lines:
        options = json.loads(line.options) if line.options else []
        lines.append(
            OrderLineSchema(
                product_id=str(line.product_id),
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                options=[format_option_label(o["name"], to_decimal(o["price_modifier"])) for o in options],
                notes=line.notes,
            )
        )
    return OrderResponse(
        order_id=str(draft.id),
        order_number=draft.order_number,
        location_id=str(draft.location_id),
        state=draft.payment_state,
        total_amount=draft.total_amount,
        currency=draft.currency,
        lines=lines,
        delivery_notes=draft.delivery_notes,
        created_at=draft.created_at.isoformat() if draft.created_at else None,
    )


def _menu_product(product_id: str):
    try:
        product = get_directory().get_product(product_id)
    except DirectoryUnavailable as exc:
        raise LocationDirectoryUnavailable("The menu is unavailable right now. Please try again.") from exc
    if product is None:
        raise ObjectNotFoundError(f"Product {product_id} is not on the menu")
    return product


def _require_user(x_user_id: str | None) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Sign in to view your orders")
    return x_user_id


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{cart_key}", response_model=CartResponse)
def get_cart(cart_key: str) -> CartResponse:
    return _cart_response(CartStore(cart_key).cart())


@cart_router.post("/{cart_key}/items", response_model=AddCartItemResponse)
def add_cart_item(cart_key: str, body: AddCartItemRequest) -> AddCartItemResponse:
    """Add a product with its option selection.

    Inventory denials and location mismatches come back with
    ``success: false`` and leave the cart unchanged.
    """
    store = CartStore(cart_key)
    result = store.add_item(
        _menu_product(body.product_id),
        quantity=body.quantity,
        options=body.options,
        notes=body.notes,
        location_id=body.location_id,
    )
    return AddCartItemResponse(**asdict(result), cart=_cart_response(store.cart()))


@cart_router.patch("/{cart_key}/items/{identity_key}", response_model=CartResponse)
def set_cart_item_quantity(cart_key: str, identity_key: str, body: SetQuantityRequest) -> CartResponse:
    store = CartStore(cart_key)
    if not store.set_quantity(identity_key, body.quantity):
        raise ObjectNotFoundError(f"Cart item {identity_key} not found")
    return _cart_response(store.cart())


@cart_router.delete("/{cart_key}/items/{identity_key}", response_model=CartResponse)
def remove_cart_item(cart_key: str, identity_key: str) -> CartResponse:
    store = CartStore(cart_key)
    store.remove_item(identity_key)
    return _cart_response(store.cart())


@cart_router.delete("/{cart_key}", response_model=CartResponse)
def clear_cart(cart_key: str) -> CartResponse:
    store = CartStore(cart_key)
    store.clear(reason="user")
    return _cart_response(store.cart())


@cart_router.put("/{cart_key}/location", response_model=LocationSelectionResponse)
def select_location(cart_key: str, body: SelectLocationRequest) -> LocationSelectionResponse:
    """Make a location active. A bound, non-empty cart answers 409 with the rebind plan."""
    selection = LocationBindingGuard().select_location(cart_key, body.location_id)
    return LocationSelectionResponse(**asdict(selection))


@cart_router.post("/{cart_key}/location/confirm", response_model=LocationSelectionResponse)
def confirm_location_switch(cart_key: str, body: RebindPlanSchema) -> LocationSelectionResponse:
    if body.cart_key != cart_key:
        raise HTTPException(status_code=400, detail="Plan does not belong to this cart")
    selection = LocationBindingGuard().confirm(RebindPlan.from_dict(body.model_dump()))
    return LocationSelectionResponse(**asdict(selection))


# ---------------------------------------------------------------------------
# Location Router
# ---------------------------------------------------------------------------
location_router = APIRouter(prefix="/locations", tags=["locations"])


@location_router.get("", response_model=list[LocationSchema])
def list_locations(x_user_id: str | None = Header(default=None)) -> list[LocationSchema]:
    auth_context = {"user_id": x_user_id} if x_user_id else None
    locations = LocationBindingGuard().list_accessible_locations(auth_context)
    return [LocationSchema(**asdict(location)) for location in locations]


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/check-availability", response_model=CheckAvailabilityResponse)
def check_availability(body: CheckAvailabilityRequest) -> CheckAvailabilityResponse:
    requests = [
        AvailabilityRequest(product_id=item.menuItemId, location_id=item.locationId, quantity=item.quantity)
        for item in body.items
    ]
    try:
        results = AdmissionCheck().check_availability(requests)
    except InventoryServiceUnavailable as exc:
        raise HTTPException(status_code=503, detail="Inventory is unavailable right now") from exc
    return CheckAvailabilityResponse(
        results=[AvailabilityResultSchema(available=r.available, currentStock=r.current_stock) for r in results]
    )


# ---------------------------------------------------------------------------
# Guest Authorization Router
# ---------------------------------------------------------------------------
guest_router = APIRouter(prefix="/guest-authorizations", tags=["guest"])


@guest_router.post("", status_code=201, response_model=GuestAuthorizationSchema)
def issue_guest_authorization(request: Request, body: GuestAuthorizationRequest) -> GuestAuthorizationSchema:
    """Exchange a CAPTCHA proof for a short-lived, single-use guest authorization."""
    command = IssueGuestAuthorization(
        captcha_token=body.captcha_token,
        remote_ip=request.client.host if request.client else None,
    )
    authorization = current_domain.process(command, asynchronous=False)
    return GuestAuthorizationSchema(**authorization)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=SubmissionReceiptResponse)
def submit_checkout(
    body: CheckoutRequest,
    x_user_id: str | None = Header(default=None),
) -> SubmissionReceiptResponse:
    """Freeze the cart into an order and start payment authorization.

    Repeating a submission with the same ``submission_id`` and cart returns
    the original order with ``duplicate: true``.
    """
    receipt = SettlementEngine().submit(
        body.cart_key,
        body.submission_id,
        user_id=x_user_id,
        guest=GuestContact(**body.guest.model_dump()) if body.guest else None,
        guest_authorization=body.guest_authorization.model_dump() if body.guest_authorization else None,
        delivery_notes=body.delivery_notes,
    )
    return SubmissionReceiptResponse(**asdict(receipt))


@checkout_router.post("/{order_id}/confirm", response_model=ConfirmationResponse)
def confirm_payment(order_id: str, body: ConfirmPaymentRequest) -> ConfirmationResponse:
    result = SettlementEngine().confirm_from_client(order_id, handle_id=body.handle_id)
    return ConfirmationResponse(**asdict(result))


# ---------------------------------------------------------------------------
# Payment Webhook Router
# ---------------------------------------------------------------------------
payment_webhook_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_webhook_router.post("/webhook", response_model=StatusResponse)
async def process_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
    stripe_signature: str = Header(default=""),
) -> StatusResponse:
    """Process a payment gateway webhook callback."""
    payload = (await request.body()).decode("utf-8")
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(payload, x_gateway_signature or stripe_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = gateway.parse_webhook(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc

    outcome = await run_in_threadpool(SettlementEngine(gateway=gateway).handle_gateway_event, event)
    return StatusResponse(status=outcome.value if outcome else "ignored")


@payment_webhook_router.post("/gateway/configure", response_model=GatewayConfigResponse)
def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        should_timeout=body.should_timeout,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        should_timeout=gateway.should_timeout,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=OrderPageResponse)
def list_orders(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    x_user_id: str | None = Header(default=None),
) -> OrderPageResponse:
    result = orders_for_user(_require_user(x_user_id), page=page, limit=limit)
    return OrderPageResponse(
        orders=[_order_response(draft) for draft in result.orders],
        page=result.page,
        limit=result.limit,
        total=result.total,
        pages=result.pages,
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, x_user_id: str | None = Header(default=None)) -> OrderResponse:
    return _order_response(get_order_for_user(order_id, _require_user(x_user_id)))


@order_router.get("/{order_id}/guest", response_model=OrderResponse)
def get_guest_order(order_id: str, token: str) -> OrderResponse:
    """Open a guest order with its single-use access token."""
    return _order_response(SettlementEngine().view_guest_order(order_id, token))


@order_router.post("/{order_id}/settlement", response_model=OrderResponse)
def record_settlement(
    order_id: str,
    body: SettlementRequest,
    x_ledger_secret: str = Header(default=""),
) -> OrderResponse:
    """Ledger acknowledgment, or a retry of the ledger hand-off when no reference is given.

    Only the ledger may call this: the X-Ledger-Secret header must carry
    LEDGER_CALLBACK_SECRET. With no secret configured every call is refused.
    """
    expected = get_settings().ledger_callback_secret
    if not expected or not hmac.compare_digest(x_ledger_secret.encode(), expected.encode()):
        logger.warning("settlement_callback_rejected", order_id=order_id)
        raise HTTPException(status_code=401, detail="Invalid ledger credentials")

    engine = SettlementEngine()
    if body.ledger_reference:
        draft = engine.acknowledge_settlement(order_id, body.ledger_reference)
    else:
        draft = engine.retry_settlement(order_id)
    return _order_response(draft)
