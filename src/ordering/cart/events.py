"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart, or an existing slot grew."""

    __version__ = 1

    cart_key = Identifier(required=True)
    identity_key = String(required=True, max_length=1000)
    product_id = Identifier(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)
    location_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    __version__ = 1

    cart_key = Identifier(required=True)
    identity_key = String(required=True, max_length=1000)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_key = Identifier(required=True)
    identity_key = String(required=True, max_length=1000)


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    """All lines were removed and the location binding released."""

    __version__ = 1

    cart_key = Identifier(required=True)
    previous_location_id = Identifier()
    reason = String(max_length=50)


@ordering.event(part_of="ShoppingCart")
class CartLocationBound:
    """An empty cart received its first line and is now scoped to a location."""

    __version__ = 1

    cart_key = Identifier(required=True)
    location_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartRebound:
    """The cart moved to another location, dropping lines the new menu lacks."""

    __version__ = 1

    cart_key = Identifier(required=True)
    from_location_id = Identifier(required=True)
    to_location_id = Identifier(required=True)
    removed_keys = Text()  # JSON array of identity keys
