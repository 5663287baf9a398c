"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@commerce.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@commerce.event(part_of="Cart")
class CartDiscountApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    kind = String(required=True)
    code = String(required=True)
    amount = Float(required=True)


@commerce.event(part_of="Cart")
class CartDiscountRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    kind = String(required=True)
    code = String(required=True)
    reason = String()


@commerce.event(part_of="Cart")
class CartsMerged:
    """A guest cart's items were folded into a customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    guest_cart_id = Identifier(required=True)
    items_merged = Integer(required=True)


@commerce.event(part_of="Cart")
class CartCheckedOut:
    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    checked_out_at = DateTime(required=True)


@commerce.event(part_of="Cart")
class CartExpired:
    __version__ = 1

    cart_id = Identifier(required=True)
    expired_at = DateTime(required=True)
