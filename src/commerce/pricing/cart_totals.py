"""Cart-level totals with stacked discounts.

Coupon and voucher amounts are computed by their own consumers against the
pre-discount subtotal and stored on the cart. The gift card is applied last
and capped at whatever balance the coupon and voucher leave.
"""

from dataclasses import dataclass
from typing import Iterable

from commerce.pricing.variant_price import round_half_up


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    discount_amount: float
    voucher_amount: float
    gift_card_amount: float
    total: float
    item_count: int

    @property
    def total_discount(self) -> float:
        return _money(self.discount_amount + self.voucher_amount + self.gift_card_amount)

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "voucher_amount": self.voucher_amount,
            "gift_card_amount": self.gift_card_amount,
            "total_discount": self.total_discount,
            "total": self.total,
            "item_count": self.item_count,
        }


def _money(value: float) -> float:
    return float(round_half_up(value, 2))


def _slot_amount(slot) -> float:
    if slot is None:
        return 0.0
    return max(0.0, float(slot.amount or 0.0))


def compute_cart_totals(items: Iterable, applied_coupon=None, applied_voucher=None, applied_gift_card=None) -> CartTotals:
    """Compute live totals for cart lines and up to three discount slots.

    ``items`` are objects exposing ``unit_price`` and ``quantity``; the slots
    expose ``amount``. ``total`` is clamped at zero, never negative.
    """
    items = list(items)
    subtotal = _money(sum(float(i.unit_price) * int(i.quantity) for i in items))
    item_count = sum(int(i.quantity) for i in items)

    coupon_amount = _money(_slot_amount(applied_coupon))
    voucher_amount = _money(_slot_amount(applied_voucher))

    remaining = max(0.0, subtotal - coupon_amount - voucher_amount)
    gift_card_amount = _money(min(_slot_amount(applied_gift_card), remaining))

    total = _money(max(0.0, subtotal - coupon_amount - voucher_amount - gift_card_amount))

    return CartTotals(
        subtotal=subtotal,
        discount_amount=coupon_amount,
        voucher_amount=voucher_amount,
        gift_card_amount=gift_card_amount,
        total=total,
        item_count=item_count,
    )
