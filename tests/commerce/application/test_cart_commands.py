"""Tests for cart commands: items, discount slots and guest merge."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from commerce.cart.cart import Cart, CartStatus
from commerce.cart.management import RemoveDiscount, RemoveFromCart, UpdateCartItem
from commerce.cart.merging import MergeGuestCart
from commerce.catalogue.management import SetVariantAvailability
from commerce.errors import ConflictError, DiscountNotFoundError, InsufficientStockError

RING_18K_PRICE = 55084.0
RING_14K_PRICE = 50532.0


def process(command):
    return current_domain.process(command, asynchronous=False)


def _cart(user_id="user-001", session_id=None):
    return current_domain.repository_for(Cart).active_for(user_id=user_id, session_id=session_id)


class TestCartItems:
    def test_add_prices_from_catalogue(self, ring, add_to_cart):
        add_to_cart(ring, quantity=2)
        cart = _cart()
        assert len(cart.items) == 1
        assert cart.items[0].unit_price == RING_18K_PRICE
        assert cart.totals().subtotal == RING_18K_PRICE * 2

    def test_same_line_accumulates(self, ring, add_to_cart):
        add_to_cart(ring, quantity=1)
        add_to_cart(ring, quantity=2)
        cart = _cart()
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_different_karat_is_a_new_line(self, ring, add_to_cart):
        add_to_cart(ring)
        add_to_cart(ring, sku="RNG-001-14K", karat=14)
        assert _cart().totals().subtotal == RING_18K_PRICE + RING_14K_PRICE

    def test_quantity_limited_by_stock(self, ring, add_to_cart):
        add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=2)
        with pytest.raises(InsufficientStockError):
            add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=1)

    def test_karat_must_match_variant(self, ring, add_to_cart):
        with pytest.raises(ValidationError):
            add_to_cart(ring, sku="RNG-001-18K", karat=14)

    def test_unknown_variant(self, ring, add_to_cart):
        with pytest.raises(ObjectNotFoundError):
            add_to_cart(ring, sku="RNG-001-9K", karat=9)

    def test_unavailable_variant(self, ring, add_to_cart):
        process(SetVariantAvailability(product_id=ring, sku="RNG-001-18K", is_available=False))
        with pytest.raises(ConflictError):
            add_to_cart(ring)

    def test_update_and_remove(self, ring, add_to_cart):
        add_to_cart(ring)
        item_id = str(_cart().items[0].id)

        process(UpdateCartItem(user_id="user-001", item_id=item_id, quantity=4))
        assert _cart().items[0].quantity == 4

        with pytest.raises(InsufficientStockError):
            process(UpdateCartItem(user_id="user-001", item_id=item_id, quantity=6))

        process(RemoveFromCart(user_id="user-001", item_id=item_id))
        assert _cart().items == []

    def test_update_to_zero_removes_line(self, ring, add_to_cart):
        add_to_cart(ring)
        item_id = str(_cart().items[0].id)
        process(UpdateCartItem(user_id="user-001", item_id=item_id, quantity=0))
        assert _cart().items == []

    def test_guest_cart_by_session(self, ring, add_to_cart):
        add_to_cart(ring, user_id=None, session_id="sess-1")
        assert _cart(user_id=None, session_id="sess-1") is not None


class TestDiscountSlots:
    def test_coupon_voucher_and_gift_card_stack(self, ring, add_to_cart, coupon, voucher, gift_card, apply_discount):
        add_to_cart(ring)
        apply_discount("coupon", coupon)
        apply_discount("voucher", voucher)
        apply_discount("gift_card", gift_card, amount=5000)

        totals = _cart().totals()
        assert totals.discount_amount == 2000
        assert totals.voucher_amount == 1000
        assert totals.gift_card_amount == 5000
        assert totals.total == RING_18K_PRICE - 8000

    def test_codes_are_case_insensitive(self, ring, add_to_cart, coupon, apply_discount):
        add_to_cart(ring)
        apply_discount("coupon", "sparkle10")
        assert _cart().slot("coupon").code == "SPARKLE10"

    def test_unknown_code(self, ring, add_to_cart, apply_discount):
        add_to_cart(ring)
        with pytest.raises(DiscountNotFoundError):
            apply_discount("coupon", "NOPE")

    def test_gift_card_cannot_exceed_payable(self, ring, add_to_cart, gift_card, apply_discount):
        add_to_cart(ring, sku="RNG-001-14K", karat=14)
        with pytest.raises(ValidationError):
            apply_discount("gift_card", gift_card, amount=RING_14K_PRICE + 1)

    def test_requires_items(self, ring, add_to_cart, coupon, apply_discount):
        add_to_cart(ring)
        item_id = str(_cart().items[0].id)
        process(RemoveFromCart(user_id="user-001", item_id=item_id))
        with pytest.raises(ValidationError):
            apply_discount("coupon", coupon)

    def test_coupon_recomputed_when_subtotal_changes(self, ring, add_to_cart, apply_discount):
        from commerce.discount.issuance import IssueCoupon

        process(IssueCoupon(code="TENPC", discount_type="percentage", value=10))
        add_to_cart(ring)
        apply_discount("coupon", "TENPC")
        assert _cart().slot("coupon").amount == 5508.4

        add_to_cart(ring)
        assert _cart().slot("coupon").amount == 11016.8

    def test_emptying_cart_drops_discounts(self, ring, add_to_cart, coupon, apply_discount):
        add_to_cart(ring)
        apply_discount("coupon", coupon)
        item_id = str(_cart().items[0].id)
        process(RemoveFromCart(user_id="user-001", item_id=item_id))
        assert _cart().applied_discounts() == []

    def test_remove_discount(self, ring, add_to_cart, coupon, voucher, apply_discount):
        add_to_cart(ring)
        apply_discount("coupon", coupon)
        apply_discount("voucher", voucher)

        process(RemoveDiscount(user_id="user-001", kind="coupon"))
        assert [d.kind.value for d in _cart().applied_discounts()] == ["voucher"]

        process(RemoveDiscount(user_id="user-001", kind="all"))
        assert _cart().applied_discounts() == []

        with pytest.raises(ValidationError):
            process(RemoveDiscount(user_id="user-001", kind="voucher"))


class TestGuestMerge:
    def test_merge_adds_and_clamps_to_stock(self, ring, add_to_cart):
        add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=2, user_id=None, session_id="sess-1")
        add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=1)

        process(MergeGuestCart(session_id="sess-1", user_id="user-001"))

        cart = _cart()
        assert cart.items[0].quantity == 2
        guest = current_domain.repository_for(Cart)._dao.query.filter(session_id="sess-1").all().items[0]
        assert guest.status == CartStatus.CONVERTED.value

    def test_merge_without_guest_cart(self):
        assert process(MergeGuestCart(session_id="nobody", user_id="user-001")) is None
