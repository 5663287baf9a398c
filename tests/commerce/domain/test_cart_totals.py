"""Tests for cart totals with stacked coupon, voucher and gift card."""

from dataclasses import dataclass

from commerce.pricing.cart_totals import compute_cart_totals


@dataclass
class Line:
    unit_price: float
    quantity: int


@dataclass
class Slot:
    amount: float


class TestComputeCartTotals:
    def test_subtotal_and_item_count(self):
        totals = compute_cart_totals([Line(100.0, 2), Line(50.0, 1)])
        assert totals.subtotal == 250.0
        assert totals.item_count == 3
        assert totals.total == 250.0

    def test_coupon_and_voucher_stack(self):
        totals = compute_cart_totals([Line(250.0, 1)], applied_coupon=Slot(20.0), applied_voucher=Slot(10.0))
        assert totals.discount_amount == 20.0
        assert totals.voucher_amount == 10.0
        assert totals.total == 220.0

    def test_gift_card_applied_last(self):
        totals = compute_cart_totals(
            [Line(250.0, 1)],
            applied_coupon=Slot(20.0),
            applied_voucher=Slot(10.0),
            applied_gift_card=Slot(100.0),
        )
        assert totals.gift_card_amount == 100.0
        assert totals.total == 120.0
        assert totals.total_discount == 130.0

    def test_gift_card_capped_at_remaining_balance(self):
        totals = compute_cart_totals([Line(100.0, 1)], applied_coupon=Slot(30.0), applied_gift_card=Slot(500.0))
        assert totals.gift_card_amount == 70.0
        assert totals.total == 0.0

    def test_total_never_negative(self):
        totals = compute_cart_totals([Line(50.0, 1)], applied_coupon=Slot(40.0), applied_voucher=Slot(40.0))
        assert totals.total == 0.0

    def test_empty_cart(self):
        totals = compute_cart_totals([])
        assert totals.subtotal == 0.0
        assert totals.total == 0.0
        assert totals.item_count == 0

    def test_rounds_half_up_to_paise(self):
        totals = compute_cart_totals([Line(10.005, 1)])
        assert totals.subtotal == 10.01

    def test_to_dict_includes_total_discount(self):
        data = compute_cart_totals([Line(250.0, 1)], applied_coupon=Slot(20.0)).to_dict()
        assert data["total_discount"] == 20.0
        assert data["total"] == 230.0
