"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    identity_key: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: str
    line_total: str
    options: list[str] = []
    notes: str | None = None


class CartResponse(BaseModel):
    cart_key: str
    bound_location_id: str | None = None
    items: list[CartLineSchema] = []
    item_count: int = 0
    total: str = "0.00"


class StatusResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    options: dict[str, list[str]] = {}
    notes: str | None = None
    location_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "latte",
                    "quantity": 2,
                    "options": {"size": ["large"], "milk": ["oat"]},
                    "location_id": "loc-north",
                }
            ]
        }
    }


class AddCartItemResponse(BaseModel):
    success: bool
    reason: str | None = None
    identity_key: str | None = None
    current_stock: int | None = None
    location_mismatch: bool = False
    cart: CartResponse


class SetQuantityRequest(BaseModel):
    quantity: int


class SelectLocationRequest(BaseModel):
    location_id: str


class RebindPlanSchema(BaseModel):
    cart_key: str
    from_location_id: str | None = None
    to_location_id: str
    keep_keys: list[str] = []
    remove_keys: list[str] = []
    unavailable_names: list[str] = []
    fingerprint: str = ""


class LocationSelectionResponse(BaseModel):
    active_location_id: str
    bound_location_id: str | None = None
    changed: bool = False


# ---------------------------------------------------------------------------
# Location / Inventory Schemas
# ---------------------------------------------------------------------------
class LocationSchema(BaseModel):
    id: str
    name: str
    address: str | None = None


class AvailabilityItemRequest(BaseModel):
    menuItemId: str
    locationId: str
    quantity: int = Field(ge=1)


class CheckAvailabilityRequest(BaseModel):
    items: list[AvailabilityItemRequest]


class AvailabilityResultSchema(BaseModel):
    available: bool
    currentStock: int


class CheckAvailabilityResponse(BaseModel):
    results: list[AvailabilityResultSchema]


# ---------------------------------------------------------------------------
# Guest Authorization Schemas
# ---------------------------------------------------------------------------
class GuestAuthorizationRequest(BaseModel):
    captcha_token: str


class GuestAuthorizationSchema(BaseModel):
    nonce: str
    issuedAt: int
    expiresAt: int
    signature: str


# ---------------------------------------------------------------------------
# Checkout Schemas
# ---------------------------------------------------------------------------
class GuestContactSchema(BaseModel):
    email: str
    first_name: str
    last_name: str


class CheckoutRequest(BaseModel):
    cart_key: str
    submission_id: str
    guest: GuestContactSchema | None = None
    guest_authorization: GuestAuthorizationSchema | None = None
    delivery_notes: str | None = None


class SubmissionReceiptResponse(BaseModel):
    order_id: str
    order_number: str
    state: str
    handle_id: str | None = None
    client_secret: str | None = None
    amount: str
    currency: str
    duplicate: bool = False


class ConfirmPaymentRequest(BaseModel):
    handle_id: str | None = None


class ConfirmationResponse(BaseModel):
    order_id: str
    order_number: str
    state: str
    outcome: str
    access_token: str | None = None


class SettlementRequest(BaseModel):
    ledger_reference: str | None = None


# ---------------------------------------------------------------------------
# Order Schemas
# ---------------------------------------------------------------------------
class OrderLineSchema(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: str
    line_total: str
    options: list[str] = []
    notes: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    location_id: str
    state: str
    total_amount: str
    currency: str
    lines: list[OrderLineSchema] = []
    delivery_notes: str | None = None
    created_at: str | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    page: int
    limit: int
    total: int
    pages: int


# ---------------------------------------------------------------------------
# Gateway Configuration Schemas (non-production)
# ---------------------------------------------------------------------------
class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"
    should_timeout: bool = False


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    should_timeout: bool
