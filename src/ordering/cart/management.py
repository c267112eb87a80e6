"""Cart management: clearing a cart.

A cart is cleared by the user, or by checkout once payment is authorized.
"""

from protean import handle
from protean.fields import Identifier, String

from ordering.cart.cart import ShoppingCart
from ordering.cart.storage import CartStorage
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    cart_key = Identifier(required=True)
    reason = String(max_length=50, default="user")


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        storage = CartStorage()
        cart = storage.load(command.cart_key)
        cart.clear(reason=command.reason)
        storage.save(cart)
