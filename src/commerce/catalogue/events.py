"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductRegistered:
    """A jewelry design was added to the catalogue."""

    __version__ = 1

    product_id: Identifier(required=True)
    product_code: String(required=True)
    name: String(required=True)
    registered_at: DateTime(required=True)


@commerce.event(part_of="Product")
class VariantAdded:
    """A karat/stone-type combination became purchasable under its own SKU."""

    __version__ = 1

    product_id: Identifier(required=True)
    sku: String(required=True)
    karat: Integer(required=True)
    stone_type: String(required=True)
    price: Float(required=True)
    stock: Integer(required=True)


@commerce.event(part_of="Product")
class StockDecremented:
    __version__ = 1

    product_id: Identifier(required=True)
    sku: String(required=True)
    quantity: Integer(required=True)
    previous_stock: Integer(required=True)
    new_stock: Integer(required=True)


@commerce.event(part_of="Product")
class StockIncremented:
    __version__ = 1

    product_id: Identifier(required=True)
    sku: String(required=True)
    quantity: Integer(required=True)
    previous_stock: Integer(required=True)
    new_stock: Integer(required=True)


@commerce.event(part_of="Product")
class VariantRepriced:
    """A variant's price was recomputed against a new rate snapshot."""

    __version__ = 1

    product_id: Identifier(required=True)
    sku: String(required=True)
    previous_price: Float(required=True)
    new_price: Float(required=True)
    repriced_at: DateTime(required=True)
