"""Cart persistence port.

A logical cart lives under one fixed storage key for the whole session. The
storage hands back an empty cart for a key it has never seen, so callers
never need to create carts explicitly.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart


class CartStorage:
    def load(self, cart_key) -> ShoppingCart:
        try:
            return current_domain.repository_for(ShoppingCart).get(str(cart_key))
        except ObjectNotFoundError:
            return ShoppingCart.create(cart_key=str(cart_key))

    def save(self, cart: ShoppingCart) -> None:
        current_domain.repository_for(ShoppingCart).add(cart)
