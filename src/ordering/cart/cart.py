"""Shopping Cart aggregate.

The cart holds the lines a session intends to buy, all priced and sourced from
one fulfillment location. Lines are keyed by an identity key derived from the
product and its canonical option selection; adding the same selection twice
grows the existing line instead of creating a second one.

The cart is bound to a location exactly when it has lines. Binding happens
on the first add, and emptying the cart (remove, clear, or a rebind that drops
every line) releases it.
"""

import hashlib
import json
from datetime import UTC, datetime
from decimal import Decimal

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from ordering.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartLocationBound,
    CartQuantityUpdated,
    CartRebound,
)
from ordering.cart.identity import identity_key
from ordering.cart.pricing import ZERO, format_option_label, quantize, to_decimal
from ordering.domain import ordering


@ordering.entity(part_of="ShoppingCart")
class CartLine:
    identity_key = String(required=True, max_length=1000)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    base_price = String(required=True, max_length=32)  # Decimal as string
    quantity = Integer(required=True, min_value=1)
    options = Text()  # JSON: [{group_id, option_id, name, price_modifier}]
    notes = Text()

    def selected_options(self) -> list[dict]:
        return json.loads(self.options) if self.options else []

    def unit_price(self) -> Decimal:
        modifiers = sum((to_decimal(o["price_modifier"]) for o in self.selected_options()), ZERO)
        return to_decimal(self.base_price) + modifiers

    def line_total(self) -> Decimal:
        return self.unit_price() * self.quantity

    def option_labels(self) -> list[str]:
        return [format_option_label(o["name"], to_decimal(o["price_modifier"])) for o in self.selected_options()]


def key_for(product_id: str, resolved_options: list[dict]) -> str:
    return identity_key(product_id, [(o["group_id"], [o["option_id"]]) for o in resolved_options or []])


@ordering.aggregate
class ShoppingCart:
    cart_key = String(identifier=True, max_length=255)
    bound_location_id = Identifier()
    lines = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def lines_require_a_bound_location(self):
        if self.lines and not self.bound_location_id:
            raise ValidationError({"bound_location_id": ["A cart with items must be bound to a location"]})

    @invariant.post
    def empty_cart_is_unbound(self):
        if not self.lines and self.bound_location_id:
            raise ValidationError({"bound_location_id": ["An empty cart cannot be bound to a location"]})

    @classmethod
    def create(cls, cart_key):
        now = datetime.now(UTC)
        return cls(cart_key=cart_key, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line(self, key):
        return next((line for line in self.lines if line.identity_key == key), None)

    def is_empty(self) -> bool:
        return not self.lines

    def total(self) -> Decimal:
        return quantize(sum((line.line_total() for line in self.lines), ZERO))

    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def content_hash(self) -> str:
        """Stable digest of what the cart would buy, independent of line order."""
        content = {
            "location_id": self.bound_location_id,
            "lines": sorted(
                [
                    {
                        "key": line.identity_key,
                        "quantity": line.quantity,
                        "base_price": line.base_price,
                        "options": line.selected_options(),
                        "notes": line.notes or "",
                    }
                    for line in self.lines
                ],
                key=lambda entry: entry["key"],
            ),
        }
        encoded = json.dumps(content, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_line(self, product_id, product_name, base_price, quantity, options=None, notes=None, location_id=None):
        """Add ``quantity`` of a product with already-validated options.

        Binds an empty cart to ``location_id``. A bound cart only accepts
        lines for its own location.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        if self.bound_location_id and location_id and str(location_id) != str(self.bound_location_id):
            raise ValidationError({"location_id": ["Cart is bound to a different location"]})
        if not self.bound_location_id and not location_id:
            raise ValidationError({"location_id": ["Choose a location before adding items"]})

        key = key_for(product_id, options)
        existing = self.line(key)
        binding = not self.bound_location_id
        now = datetime.now(UTC)

        with atomic_change(self):
            if binding:
                self.bound_location_id = str(location_id)

            if existing:
                existing.quantity += quantity
                if notes:
                    existing.notes = notes
                new_quantity = existing.quantity
            else:
                self.add_lines(
                    CartLine(
                        identity_key=key,
                        product_id=product_id,
                        product_name=product_name,
                        base_price=str(to_decimal(base_price)),
                        quantity=quantity,
                        options=json.dumps(options or []),
                        notes=notes or None,
                    )
                )
                new_quantity = quantity

            self.updated_at = now

        if binding:
            self.raise_(CartLocationBound(cart_key=self.cart_key, location_id=self.bound_location_id))

        self.raise_(
            CartItemAdded(
                cart_key=self.cart_key,
                identity_key=key,
                product_id=str(product_id),
                quantity_added=quantity,
                new_quantity=new_quantity,
                location_id=self.bound_location_id,
            )
        )
        return key

    def set_line_quantity(self, key, quantity) -> bool:
        """Set a line's quantity. Zero or less removes it; an unknown key is a no-op."""
        line = self.line(key)
        if line is None:
            return False
        if quantity <= 0:
            return self.remove_line(key)

        previous_quantity = line.quantity
        if previous_quantity == quantity:
            return True

        line.quantity = quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_key=self.cart_key,
                identity_key=key,
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return True

    def remove_line(self, key) -> bool:
        line = self.line(key)
        if line is None:
            return False

        with atomic_change(self):
            self.remove_lines(line)
            if not self.lines:
                self.bound_location_id = None
            self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_key=self.cart_key, identity_key=key))
        return True

    def clear(self, reason="user"):
        previous_location_id = self.bound_location_id
        if not self.lines and not previous_location_id:
            return

        with atomic_change(self):
            for line in list(self.lines):
                self.remove_lines(line)
            self.bound_location_id = None
            self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_key=self.cart_key,
                previous_location_id=previous_location_id,
                reason=reason,
            )
        )

    def rebind(self, to_location_id, remove_keys=()):
        """Move the cart to ``to_location_id`` after dropping ``remove_keys``, as one change."""
        if not self.bound_location_id:
            raise ValidationError({"bound_location_id": ["Only a bound cart can be rebound"]})

        from_location_id = self.bound_location_id
        removed = [key for key in remove_keys if self.line(key) is not None]

        with atomic_change(self):
            for key in removed:
                self.remove_lines(self.line(key))
            self.bound_location_id = str(to_location_id) if self.lines else None
            self.updated_at = datetime.now(UTC)

        self.raise_(
            CartRebound(
                cart_key=self.cart_key,
                from_location_id=from_location_id,
                to_location_id=str(to_location_id),
                removed_keys=json.dumps(removed),
            )
        )
