"""Domain events for the Order aggregate.

Orders are event sourced: these events are the only record of an order's
state, and replaying them through the aggregate's @apply handlers rebuilds
it. OrderPlaced carries the complete, frozen purchase snapshot.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    """A cart was checked out into an immutable order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    customer_email = String()
    items = Text(required=True)  # JSON: list of item snapshots
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text(required=True)  # JSON: address dict
    discounts = Text()  # JSON: {"coupon": {...}, "voucher": {...}, "gift_card": {...}}
    subtotal = Float(required=True)
    coupon_amount = Float()
    voucher_amount = Float()
    gift_card_amount = Float()
    total_discount = Float()
    shipping_charge = Float()
    tax_amount = Float()
    total = Float(required=True)
    currency = String(default="INR")
    payment_method = String(required=True)
    notes = String()
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    estimated_delivery_date = DateTime(required=True)
    processing_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderFailed:
    """Payment for the order failed; stock stays held so the order can be retried."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderRetried:
    __version__ = 1

    order_id = Identifier(required=True)
    retried_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderReturned:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    returned_by = String(required=True)
    returned_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_status = String(required=True)
    payment_method = String()
    changed_at = DateTime(required=True)
