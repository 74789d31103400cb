"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product line was added to the cart, or its quantity increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    new_grand_total = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    new_grand_total = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_grand_total = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartConverted:
    """The cart was consumed by order placement and accepts no further changes."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_number = String(required=True)
    converted_at = DateTime(required=True)
