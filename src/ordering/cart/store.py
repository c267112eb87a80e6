"""Cart Store: the only way callers change a cart.

Validates the option selection, runs the inventory admission check for bound
carts, and dispatches the cart commands one at a time per cart key, so that
two quick "add" clicks merge into one line instead of racing.

Advisory failures (inventory denial, a cart bound to another location) come
back as a failed ``CartResult``; only malformed input raises.
"""

import json
from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart, key_for
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import ClearCart
from ordering.cart.options import resolve_options
from ordering.cart.pricing import to_decimal
from ordering.cart.storage import CartStorage
from ordering.inventory.admission import AdmissionCheck
from ordering.location.port import MenuProduct
from ordering.utils.locks import cart_locks

logger = structlog.get_logger(__name__)

LOCATION_MISMATCH_REASON = "Your cart has items from another location. Switch location to add this item."


@dataclass(frozen=True)
class CartResult:
    success: bool
    reason: str | None = None
    identity_key: str | None = None
    current_stock: int | None = None
    location_mismatch: bool = False


class CartStore:
    def __init__(self, cart_key, admission: AdmissionCheck | None = None, storage: CartStorage | None = None):
        self.cart_key = str(cart_key)
        self.admission = admission or AdmissionCheck()
        self.storage = storage or CartStorage()

    def cart(self) -> ShoppingCart:
        return self.storage.load(self.cart_key)

    def add_item(self, product: MenuProduct, quantity=1, options=None, notes=None, location_id=None) -> CartResult:
        """Add ``quantity`` of ``product`` with an option selection.

        ``location_id`` is the caller's active location. It binds an empty
        cart and must match the binding of a non-empty one.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        resolved = resolve_options(product, options)
        key = key_for(product.id, resolved)

        with cart_locks.hold(self.cart_key):
            cart = self.cart()

            if cart.bound_location_id and location_id and str(location_id) != str(cart.bound_location_id):
                return CartResult(success=False, reason=LOCATION_MISMATCH_REASON, location_mismatch=True)
            if not cart.bound_location_id and not location_id:
                raise ValidationError({"location_id": ["Choose a location before adding items"]})

            if cart.bound_location_id:
                existing = cart.line(key)
                desired = (existing.quantity if existing else 0) + quantity
                decision = self.admission.admit(product.id, cart.bound_location_id, desired)
                if not decision.admitted:
                    return CartResult(
                        success=False,
                        reason=decision.reason,
                        identity_key=key,
                        current_stock=decision.current_stock,
                    )

            current_domain.process(
                AddToCart(
                    cart_key=self.cart_key,
                    product_id=product.id,
                    product_name=product.name,
                    base_price=str(to_decimal(product.base_price, "base_price")),
                    quantity=quantity,
                    options=json.dumps(resolved),
                    notes=notes or None,
                    location_id=str(location_id or cart.bound_location_id),
                ),
                asynchronous=False,
            )

        logger.info("cart_item_added", cart_key=self.cart_key, identity_key=key, quantity=quantity)
        return CartResult(success=True, identity_key=key)

    def remove_item(self, identity_key) -> bool:
        with cart_locks.hold(self.cart_key):
            return bool(
                current_domain.process(
                    RemoveFromCart(cart_key=self.cart_key, identity_key=identity_key),
                    asynchronous=False,
                )
            )

    def set_quantity(self, identity_key, quantity) -> bool:
        with cart_locks.hold(self.cart_key):
            return bool(
                current_domain.process(
                    UpdateCartQuantity(cart_key=self.cart_key, identity_key=identity_key, quantity=quantity),
                    asynchronous=False,
                )
            )

    def clear(self, reason="user") -> None:
        with cart_locks.hold(self.cart_key):
            current_domain.process(ClearCart(cart_key=self.cart_key, reason=reason), asynchronous=False)

    def total(self) -> Decimal:
        return self.cart().total()

    def item_count(self) -> int:
        return self.cart().item_count()
