"""Tests for OrderLifecycle: transitions, ownership and stock release."""

import pytest
from protean.exceptions import ValidationError

from commerce.catalogue import get_catalogue
from commerce.checkout.orchestrator import CheckoutOrchestrator, CheckoutRequest
from commerce.errors import InternalInconsistencyError, InvalidTransitionError
from commerce.order.lifecycle import OrderLifecycle
from commerce.order.order import OrderStatus


def _stock(sku):
    return get_catalogue().get_variant(sku).stock


@pytest.fixture()
def checked_out(ring, add_to_cart, address):
    """An order for both 14k units of the ring."""
    add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=2)
    result = CheckoutOrchestrator().checkout(CheckoutRequest(user_id="user-001", shipping_address=address))
    return result.order_id


def _advance(order_id, *statuses):
    lifecycle = OrderLifecycle()
    for status in statuses:
        lifecycle.update_status(order_id, status)


class TestStatusUpdates:
    def test_full_fulfilment(self, checked_out):
        lifecycle = OrderLifecycle()
        lifecycle.update_status(checked_out, "processing")
        order = lifecycle.update_status(checked_out, "shipped", tracking_number="AWB42")
        assert order.tracking_number == "AWB42"
        order = lifecycle.update_status(checked_out, "delivered")
        assert order.status == OrderStatus.DELIVERED.value

    def test_invalid_transition_rejected(self, checked_out):
        with pytest.raises(InvalidTransitionError):
            OrderLifecycle().update_status(checked_out, "delivered")
        assert OrderLifecycle().get(checked_out).status == OrderStatus.PENDING.value

    def test_fulfilment_keeps_stock_taken(self, checked_out):
        _advance(checked_out, "processing", "shipped", "delivered")
        assert _stock("RNG-001-14K") == 0


class TestCancel:
    def test_cancel_releases_stock(self, checked_out):
        assert _stock("RNG-001-14K") == 0
        order = OrderLifecycle().cancel(checked_out, "user-001", reason="Ordered twice")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Ordered twice"
        assert _stock("RNG-001-14K") == 2

    def test_released_stock_can_be_bought_again(self, checked_out, ring, add_to_cart, address):
        OrderLifecycle().cancel(checked_out, "user-001")
        add_to_cart(ring, sku="RNG-001-14K", karat=14, quantity=2, user_id="user-002")

        result = CheckoutOrchestrator().checkout(CheckoutRequest(user_id="user-002", shipping_address=address))

        assert result.order_id != checked_out
        assert _stock("RNG-001-14K") == 0

    def test_cancel_twice_rejected_and_stock_released_once(self, checked_out):
        OrderLifecycle().cancel(checked_out, "user-001")
        with pytest.raises(InvalidTransitionError):
            OrderLifecycle().cancel(checked_out, "user-001")
        assert _stock("RNG-001-14K") == 2

    def test_only_owner_may_cancel(self, checked_out):
        with pytest.raises(ValidationError):
            OrderLifecycle().cancel(checked_out, "user-999")
        assert _stock("RNG-001-14K") == 0

    def test_customer_cannot_cancel_shipped(self, checked_out):
        _advance(checked_out, "processing", "shipped")
        with pytest.raises(InvalidTransitionError):
            OrderLifecycle().cancel(checked_out, "user-001")

    def test_admin_cancel_request_of_shipped_order_rejected(self, checked_out):
        _advance(checked_out, "processing", "shipped")
        with pytest.raises(InvalidTransitionError):
            OrderLifecycle().cancel(checked_out, "ops-1", reason="Lost in transit", as_admin=True)
        assert _stock("RNG-001-14K") == 0

    def test_status_update_cancelling_shipped_order_releases_stock(self, checked_out):
        _advance(checked_out, "processing", "shipped")
        order = OrderLifecycle().update_status(checked_out, "cancelled", reason="Lost in transit")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "admin"
        assert _stock("RNG-001-14K") == 2

    def test_release_failure_reported(self, place_order):
        # Snapshot points at a product the catalogue does not know
        order_id = place_order()
        with pytest.raises(InternalInconsistencyError) as exc:
            OrderLifecycle().cancel(order_id, "user-001")
        assert exc.value.details["order_id"] == order_id
        assert OrderLifecycle().get(order_id).status == OrderStatus.CANCELLED.value


class TestReturn:
    def test_return_after_delivery_releases_stock(self, checked_out):
        _advance(checked_out, "processing", "shipped", "delivered")
        order = OrderLifecycle().return_order(checked_out, "user-001", reason="Wrong size")
        assert order.status == OrderStatus.RETURNED.value
        assert order.return_reason == "Wrong size"
        assert _stock("RNG-001-14K") == 2

    def test_return_before_delivery_rejected(self, checked_out):
        _advance(checked_out, "processing")
        with pytest.raises(InvalidTransitionError):
            OrderLifecycle().return_order(checked_out, "user-001")

    def test_status_update_to_returned_releases_stock(self, checked_out):
        _advance(checked_out, "processing", "shipped", "delivered", "returned")
        assert _stock("RNG-001-14K") == 2
