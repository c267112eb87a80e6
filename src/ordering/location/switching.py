"""Location switching: rebind command and handler.

The guard computes the complete plan first; this handler applies it to the
cart as one change, so a half-rebound cart is never stored.
"""

import json

from protean import handle
from protean.fields import Identifier, Text

from ordering.cart.cart import ShoppingCart
from ordering.cart.storage import CartStorage
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class RebindCart:
    cart_key = Identifier(required=True)
    to_location_id = Identifier(required=True)
    remove_keys = Text()  # JSON array of identity keys


@ordering.command_handler(part_of=ShoppingCart)
class SwitchLocationHandler:
    @handle(RebindCart)
    def rebind_cart(self, command):
        storage = CartStorage()
        cart = storage.load(command.cart_key)
        cart.rebind(
            to_location_id=command.to_location_id,
            remove_keys=json.loads(command.remove_keys) if command.remove_keys else [],
        )
        storage.save(cart)
        return cart.bound_location_id
