"""Cart aggregate (CQRS): mutable basket that checkout turns into an Order.

A cart belongs to a customer or, before login, to a guest session. It holds
line items priced from the catalogue at the moment they were added, and three
independent discount slots (coupon, voucher, gift card) that may combine.
Totals are never stored: they are recomputed from the lines and slots on
every read.
"""

from datetime import timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from commerce.cart.events import (
    CartCheckedOut,
    CartDiscountApplied,
    CartDiscountRemoved,
    CartExpired,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
    CartsMerged,
)
from commerce.catalogue.product import normalize_sku
from commerce.discount.port import DiscountKind, Redemption
from commerce.domain import commerce
from commerce.pricing.cart_totals import CartTotals, compute_cart_totals
from commerce.settings import get_settings
from commerce.utils.clock import as_utc, utcnow


class CartStatus(Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    EXPIRED = "expired"


_SLOTS = {
    DiscountKind.COUPON: "applied_coupon",
    DiscountKind.VOUCHER: "applied_voucher",
    DiscountKind.GIFT_CARD: "applied_gift_card",
}


@commerce.value_object(part_of="Cart")
class AppliedDiscount:
    code = String(required=True, max_length=50)
    reference_id = Identifier()
    amount = Float(required=True, min_value=0.0)
    applied_at = DateTime()


@commerce.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=64)
    karat = Integer(required=True)
    stone_type = String(max_length=30)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    selected_image = String(max_length=500)
    added_at = DateTime()


@commerce.aggregate
class Cart:
    user_id = Identifier()  # Empty for guest carts
    session_id = String(max_length=255)
    items = HasMany(CartItem)
    applied_coupon = ValueObject(AppliedDiscount)
    applied_voucher = ValueObject(AppliedDiscount)
    applied_gift_card = ValueObject(AppliedDiscount)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_an_owner(self):
        if not self.user_id and not self.session_id:
            raise ValidationError({"cart": ["A cart needs a user or a guest session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None):
        now = utcnow()
        return cls(
            user_id=user_id,
            session_id=session_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=get_settings().cart_ttl_days),
        )

    def _touch(self):
        now = utcnow()
        self.updated_at = now
        self.expires_at = now + timedelta(days=get_settings().cart_ttl_days)
        return now

    def _assert_active(self, action: str):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a cart that is {self.status}"]})

    def is_expired(self, now=None) -> bool:
        now = now or utcnow()
        return self.expires_at is not None and as_utc(self.expires_at) <= now

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    def line_for(self, product_id, karat, sku):
        sku = normalize_sku(sku)
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and i.karat == karat and i.sku == sku
            ),
            None,
        )

    def add_item(self, product_id, sku, karat, stone_type, unit_price, quantity, selected_image=None):
        """Add a line, or increase the quantity of the same product/karat/SKU."""
        self._assert_active("add items to")
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        now = self._touch()
        existing = self.line_for(product_id, karat, sku)
        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                sku=normalize_sku(sku),
                karat=karat,
                stone_type=stone_type,
                unit_price=unit_price,
                quantity=quantity,
                selected_image=selected_image,
                added_at=now,
            )
            self.add_items(item)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                sku=item.sku,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        """Set a line's quantity; zero removes the line."""
        self._assert_active("update")
        if new_quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        if new_quantity == 0:
            self.remove_item(item_id)
            return

        item = self.find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self._touch()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        self._assert_active("remove items from")
        item = self.find_item(item_id)
        self.remove_items(item)
        self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    # -------------------------------------------------------------------
    # Discount slots
    # -------------------------------------------------------------------
    def slot(self, kind) -> AppliedDiscount | None:
        return getattr(self, _SLOTS[DiscountKind(kind)])

    def apply_discount(self, redemption: Redemption):
        """Fill the slot for the redemption's kind, replacing any earlier code."""
        self._assert_active("apply discounts to")
        if not self.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        now = self._touch()
        setattr(
            self,
            _SLOTS[redemption.kind],
            AppliedDiscount(
                code=redemption.code,
                reference_id=redemption.reference_id,
                amount=redemption.amount,
                applied_at=now,
            ),
        )
        self.raise_(
            CartDiscountApplied(
                cart_id=str(self.id),
                kind=redemption.kind.value,
                code=redemption.code,
                amount=redemption.amount,
            )
        )

    def remove_discount(self, kind, reason=None):
        kind = DiscountKind(kind)
        applied = self.slot(kind)
        if applied is None:
            raise ValidationError({"kind": [f"No {kind.value} applied to cart"]})

        setattr(self, _SLOTS[kind], None)
        self._touch()
        self.raise_(CartDiscountRemoved(cart_id=str(self.id), kind=kind.value, code=applied.code, reason=reason))

    def applied_discounts(self) -> list[Redemption]:
        """Applied slots in stacking order: coupon, voucher, gift card."""
        applied = []
        for kind, attr in _SLOTS.items():
            slot = getattr(self, attr)
            if slot is not None:
                applied.append(
                    Redemption(
                        kind=kind,
                        code=slot.code,
                        reference_id=str(slot.reference_id) if slot.reference_id else "",
                        amount=slot.amount,
                    )
                )
        return applied

    def totals(self) -> CartTotals:
        return compute_cart_totals(
            self.items,
            applied_coupon=self.applied_coupon,
            applied_voucher=self.applied_voucher,
            applied_gift_card=self.applied_gift_card,
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def record_merge(self, guest_cart, items_merged: int):
        self._touch()
        guest_cart.status = CartStatus.CONVERTED.value
        guest_cart.updated_at = self.updated_at
        self.raise_(CartsMerged(cart_id=str(self.id), guest_cart_id=str(guest_cart.id), items_merged=items_merged))

    def check_out(self, order_id):
        """Empty the cart once its contents became an order."""
        self._assert_active("check out")
        now = utcnow()
        for item in list(self.items):
            self.remove_items(item)
        for attr in _SLOTS.values():
            setattr(self, attr, None)
        self.status = CartStatus.CONVERTED.value
        self.updated_at = now

        self.raise_(CartCheckedOut(cart_id=str(self.id), order_id=str(order_id), checked_out_at=now))

    def expire(self, now=None):
        now = now or utcnow()
        self._assert_active("expire")
        self.status = CartStatus.EXPIRED.value
        self.updated_at = now
        self.raise_(CartExpired(cart_id=str(self.id), expired_at=now))
