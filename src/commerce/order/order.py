"""Order aggregate (Event Sourced): the immutable result of a checkout.

Everything a customer bought is frozen into the OrderPlaced event: item
snapshots (name, image, SKU, karat, stone type, weight, price at purchase),
addresses, discount snapshots and every monetary figure. Nothing is ever
recomputed from live catalogue prices. Afterwards only the status and its
bookkeeping fields change.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED → RETURNED
    PENDING/PROCESSING/SHIPPED → CANCELLED
    PENDING → FAILED → PENDING (retry)
"""

import json
import secrets
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from commerce.domain import commerce
from commerce.errors import InvalidTransitionError
from commerce.inventory.ledger import StockLine
from commerce.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderFailed,
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderProcessing,
    OrderRetried,
    OrderReturned,
    OrderShipped,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"
    RETURNED = "returned"


class PaymentMethod(Enum):
    GATEWAY = "gateway"
    COD = "cod"


class OrderPaymentStatus(Enum):
    PENDING = "pending"
    CAPTURED = "captured"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.FAILED: {OrderStatus.PENDING},  # retry
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# States from which a customer may cancel
_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

# Entering these states hands the items' stock back to the catalogue
STOCK_RELEASING_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}


def _reference(prefix: str) -> str:
    """``PREFIX`` + epoch milliseconds + three random digits."""
    millis = int(datetime.now(UTC).timestamp() * 1000)
    return f"{prefix}{millis}{secrets.randbelow(1000):03d}"


def generate_order_number() -> str:
    return _reference("ORD")


def generate_tracking_number() -> str:
    return _reference("TRK")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class Address:
    """Delivery or billing address as captured at checkout."""

    name = String(required=True, max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(max_length=20)


@commerce.value_object(part_of="Order")
class OrderPricing:
    """Monetary figures fixed when the order was placed."""

    subtotal = Float(default=0.0)
    coupon_amount = Float(default=0.0)
    voucher_amount = Float(default=0.0)
    gift_card_amount = Float(default=0.0)
    total_discount = Float(default=0.0)
    shipping_charge = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="INR")


@commerce.value_object(part_of="Order")
class DiscountSnapshot:
    """A consumed discount as it stood at checkout, not a live reference."""

    code = String(required=True, max_length=50)
    reference_id = String(max_length=64)
    amount = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_image = String(max_length=500)
    sku = String(required=True, max_length=64)
    karat = Integer(required=True)
    stone_type = String(max_length=30)
    price_at_purchase = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    gross_weight = Float(default=0.0)
    item_total = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@commerce.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=32)
    user_id = Identifier(required=True)
    customer_email = String(max_length=255)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    pricing = ValueObject(OrderPricing)
    coupon = ValueObject(DiscountSnapshot)
    voucher = ValueObject(DiscountSnapshot)
    gift_card = ValueObject(DiscountSnapshot)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.GATEWAY.value)
    payment_status = String(choices=OrderPaymentStatus, default=OrderPaymentStatus.PENDING.value)
    notes = String(max_length=1000)
    estimated_delivery_date = DateTime()
    tracking_number = String(max_length=64)
    failure_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    return_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()
    cancelled_at = DateTime()
    delivered_at = DateTime()
    returned_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        items_data,
        shipping_address,
        billing_address,
        pricing,
        payment_method,
        discounts=None,
        customer_email=None,
        notes=None,
        order_number=None,
    ):
        """Create the order from a checkout snapshot.

        Args:
            items_data: list of dicts with product_id, product_name,
                product_image, sku, karat, stone_type, price_at_purchase,
                quantity and gross_weight.
            shipping_address / billing_address: Address field dicts.
            pricing: dict of OrderPricing fields.
            discounts: dict keyed by coupon/voucher/gift_card holding
                code, reference_id and amount of each consumed discount.
        """
        now = datetime.now(UTC)

        # Pre-generate item IDs for deterministic replay
        items_with_ids = [
            {
                **item,
                "id": str(uuid4()),
                "item_total": round(item["price_at_purchase"] * item["quantity"], 2),
            }
            for item in items_data
        ]

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number or generate_order_number(),
                user_id=str(user_id),
                customer_email=customer_email,
                items=json.dumps(items_with_ids),
                shipping_address=json.dumps(shipping_address),
                billing_address=json.dumps(billing_address),
                discounts=json.dumps(discounts or {}),
                subtotal=pricing["subtotal"],
                coupon_amount=pricing.get("coupon_amount", 0.0),
                voucher_amount=pricing.get("voucher_amount", 0.0),
                gift_card_amount=pricing.get("gift_card_amount", 0.0),
                total_discount=pricing.get("total_discount", 0.0),
                shipping_charge=pricing.get("shipping_charge", 0.0),
                tax_amount=pricing.get("tax_amount", 0.0),
                total=pricing["total"],
                currency=pricing.get("currency", "INR"),
                payment_method=PaymentMethod(payment_method).value,
                notes=notes,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id) -> bool:
        return str(self.user_id) == str(user_id)

    def stock_lines(self) -> list[StockLine]:
        """The exact quantities this order holds, one line per item snapshot."""
        return [StockLine(product_id=str(i.product_id), sku=i.sku, quantity=i.quantity) for i in self.items]

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(current.value, target_status.value)

    def transition_to(self, target, tracking_number=None, reason=None, actor="admin", eta_days=7):
        """Move to ``target`` through the transition table, applying its side effects."""
        target = OrderStatus(target)
        if target == OrderStatus.PROCESSING:
            self.mark_processing(eta_days)
        elif target == OrderStatus.SHIPPED:
            self.mark_shipped(tracking_number)
        elif target == OrderStatus.DELIVERED:
            self.mark_delivered()
        elif target == OrderStatus.FAILED:
            self.mark_failed(reason)
        elif target == OrderStatus.PENDING:
            self.retry()
        elif target == OrderStatus.CANCELLED:
            self._cancel(reason, actor)
        elif target == OrderStatus.RETURNED:
            self._return(reason, actor)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_processing(self, eta_days: int = 7) -> None:
        self._assert_can_transition(OrderStatus.PROCESSING)
        now = datetime.now(UTC)
        self.raise_(
            OrderProcessing(
                order_id=str(self.id),
                estimated_delivery_date=now + timedelta(days=eta_days),
                processing_at=now,
            )
        )

    def mark_shipped(self, tracking_number=None) -> None:
        self._assert_can_transition(OrderStatus.SHIPPED)
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=tracking_number or self.tracking_number or generate_tracking_number(),
                shipped_at=datetime.now(UTC),
            )
        )

    def mark_delivered(self) -> None:
        self._assert_can_transition(OrderStatus.DELIVERED)
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=datetime.now(UTC)))

    def mark_failed(self, reason=None) -> None:
        self._assert_can_transition(OrderStatus.FAILED)
        self.raise_(OrderFailed(order_id=str(self.id), reason=reason, failed_at=datetime.now(UTC)))

    def retry(self) -> None:
        self._assert_can_transition(OrderStatus.PENDING)
        self.raise_(OrderRetried(order_id=str(self.id), retried_at=datetime.now(UTC)))

    def cancel(self, reason, cancelled_by) -> None:
        """Customer-facing cancel: only before the order has shipped."""
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidTransitionError(current.value, OrderStatus.CANCELLED.value)
        self._cancel(reason, cancelled_by)

    def _cancel(self, reason, cancelled_by) -> None:
        self._assert_can_transition(OrderStatus.CANCELLED)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=str(cancelled_by),
                cancelled_at=datetime.now(UTC),
            )
        )

    def mark_returned(self, reason, returned_by) -> None:
        self._return(reason, returned_by)

    def _return(self, reason, returned_by) -> None:
        self._assert_can_transition(OrderStatus.RETURNED)
        self.raise_(
            OrderReturned(
                order_id=str(self.id),
                reason=reason,
                returned_by=str(returned_by),
                returned_at=datetime.now(UTC),
            )
        )

    def record_payment_status(self, payment_status, payment_method=None) -> None:
        self.raise_(
            OrderPaymentStatusChanged(
                order_id=str(self.id),
                payment_status=OrderPaymentStatus(payment_status).value,
                payment_method=PaymentMethod(payment_method).value if payment_method else None,
                changed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.user_id = event.user_id
        self.customer_email = event.customer_email
        self.status = OrderStatus.PENDING.value
        self.payment_method = event.payment_method
        self.payment_status = OrderPaymentStatus.PENDING.value
        self.notes = event.notes
        self.created_at = event.placed_at
        self.updated_at = event.placed_at

        # Reconstruct items from JSON (includes IDs for deterministic replay)
        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]

        ship_data = json.loads(event.shipping_address) if isinstance(event.shipping_address, str) else {}
        if ship_data:
            self.shipping_address = Address(**ship_data)

        bill_data = json.loads(event.billing_address) if isinstance(event.billing_address, str) else {}
        if bill_data:
            self.billing_address = Address(**bill_data)

        discounts = json.loads(event.discounts) if isinstance(event.discounts, str) else {}
        for slot in ("coupon", "voucher", "gift_card"):
            if discounts.get(slot):
                setattr(self, slot, DiscountSnapshot(**discounts[slot]))

        self.pricing = OrderPricing(
            subtotal=event.subtotal,
            coupon_amount=event.coupon_amount or 0.0,
            voucher_amount=event.voucher_amount or 0.0,
            gift_card_amount=event.gift_card_amount or 0.0,
            total_discount=event.total_discount or 0.0,
            shipping_charge=event.shipping_charge or 0.0,
            tax_amount=event.tax_amount or 0.0,
            total=event.total,
            currency=event.currency or "INR",
        )

    @apply
    def _on_order_processing(self, event: OrderProcessing):
        self.status = OrderStatus.PROCESSING.value
        self.estimated_delivery_date = event.estimated_delivery_date
        self.updated_at = event.processing_at

    @apply
    def _on_order_shipped(self, event: OrderShipped):
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = event.tracking_number
        self.updated_at = event.shipped_at

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = event.delivered_at
        self.updated_at = event.delivered_at

    @apply
    def _on_order_failed(self, event: OrderFailed):
        self.status = OrderStatus.FAILED.value
        self.failure_reason = event.reason
        self.updated_at = event.failed_at

    @apply
    def _on_order_retried(self, event: OrderRetried):
        self.status = OrderStatus.PENDING.value
        self.failure_reason = None
        self.updated_at = event.retried_at

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = event.reason
        self.cancelled_by = event.cancelled_by
        self.cancelled_at = event.cancelled_at
        self.updated_at = event.cancelled_at

    @apply
    def _on_order_returned(self, event: OrderReturned):
        self.status = OrderStatus.RETURNED.value
        self.return_reason = event.reason
        self.returned_at = event.returned_at
        self.updated_at = event.returned_at

    @apply
    def _on_payment_status_changed(self, event: OrderPaymentStatusChanged):
        self.payment_status = event.payment_status
        if event.payment_method:
            self.payment_method = event.payment_method
        self.updated_at = event.changed_at
