"""Cart item management: commands and handler.

Commands carry an already validated and priced selection; admission and
location checks happen in CartStore before anything is dispatched here.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text

from ordering.cart.cart import ShoppingCart
from ordering.cart.storage import CartStorage
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    cart_key = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    base_price = String(required=True, max_length=32)
    quantity = Integer(required=True, min_value=1)
    options = Text()  # JSON: resolved option list
    notes = Text()
    location_id = Identifier()


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    cart_key = Identifier(required=True)
    identity_key = String(required=True, max_length=1000)
    quantity = Integer(required=True)  # <= 0 removes the line


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_key = Identifier(required=True)
    identity_key = String(required=True, max_length=1000)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        storage = CartStorage()
        cart = storage.load(command.cart_key)
        key = cart.add_line(
            product_id=command.product_id,
            product_name=command.product_name,
            base_price=command.base_price,
            quantity=command.quantity,
            options=json.loads(command.options) if command.options else [],
            notes=command.notes,
            location_id=command.location_id,
        )
        storage.save(cart)
        return key

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        storage = CartStorage()
        cart = storage.load(command.cart_key)
        changed = cart.set_line_quantity(command.identity_key, command.quantity)
        if changed:
            storage.save(cart)
        return changed

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        storage = CartStorage()
        cart = storage.load(command.cart_key)
        removed = cart.remove_line(command.identity_key)
        if removed:
            storage.save(cart)
        return removed
