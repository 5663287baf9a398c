"""Tests for refund requests and settlement."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.errors import ExternalGatewayError, InvalidTransitionError
from commerce.payment.lifecycle import PaymentLifecycle
from commerce.payment.payment import Payment, RefundStatus


def _captured_gateway_payment(place_order, gateway, total=500.0):
    order_id = place_order(total=total)
    lifecycle = PaymentLifecycle()
    initiation = lifecycle.initiate_payment(order_id, "user-001", "gateway")
    payment_id, signature = gateway.simulate_payment(initiation["gateway_order_id"])
    lifecycle.handle_gateway_confirmation(initiation["gateway_order_id"], payment_id, signature)
    return initiation["payment_id"]


def _payment(payment_id):
    return current_domain.repository_for(Payment).get(payment_id)


class TestRequestRefund:
    def test_partial_refund_sent_to_gateway(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)

        refund_id = PaymentLifecycle().initiate_refund(payment_id, 200.0, reason="Scratched clasp")

        refund = _payment(payment_id).find_refund(refund_id)
        assert refund.status == RefundStatus.PENDING.value
        assert refund.gateway_refund_id.startswith("rfnd_")
        assert gateway.calls[-1] == {
            "method": "refund",
            "gateway_payment_id": _payment(payment_id).gateway_payment_id,
            "amount": 20000,
        }

    def test_refunds_bounded_by_amount(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)
        lifecycle = PaymentLifecycle()
        lifecycle.initiate_refund(payment_id, 300.0)

        with pytest.raises(ValidationError):
            lifecycle.initiate_refund(payment_id, 250.0)
        assert _payment(payment_id).refunded_amount() == 300.0

    def test_gateway_error_records_nothing(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)
        gateway.configure(should_succeed=False, failure_reason="Refund window closed")

        with pytest.raises(ExternalGatewayError):
            PaymentLifecycle().initiate_refund(payment_id, 100.0)
        assert _payment(payment_id).refunds == []

    def test_uncaptured_payment_not_refundable(self, place_order, gateway):
        order_id = place_order()
        initiation = PaymentLifecycle().initiate_payment(order_id, "user-001", "gateway")

        with pytest.raises(ValidationError):
            PaymentLifecycle().initiate_refund(initiation["payment_id"], 100.0)
        assert not [c for c in gateway.calls if c["method"] == "refund"]

    def test_cod_refund_skips_gateway(self, place_order, gateway):
        order_id = place_order(total=500.0, payment_method="cod")
        lifecycle = PaymentLifecycle()
        payment_id = lifecycle.initiate_payment(order_id, "user-001", "cod")["payment_id"]
        lifecycle.confirm_cod_payment(order_id, 500.0)

        refund_id = lifecycle.initiate_refund(payment_id, 500.0)

        assert _payment(payment_id).find_refund(refund_id).gateway_refund_id is None
        assert not [c for c in gateway.calls if c["method"] == "refund"]


class TestProcessRefund:
    def test_processed(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)
        lifecycle = PaymentLifecycle()
        refund_id = lifecycle.initiate_refund(payment_id, 500.0)

        lifecycle.process_refund(payment_id, refund_id, "processed")

        refund = _payment(payment_id).find_refund(refund_id)
        assert refund.status == RefundStatus.PROCESSED.value
        assert refund.processed_at is not None

    def test_failed_refund_can_be_requested_again(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)
        lifecycle = PaymentLifecycle()
        refund_id = lifecycle.initiate_refund(payment_id, 500.0)
        lifecycle.process_refund(payment_id, refund_id, "failed")

        lifecycle.initiate_refund(payment_id, 500.0)
        assert _payment(payment_id).refunded_amount() == 500.0

    def test_settled_refund_is_final(self, place_order, gateway):
        payment_id = _captured_gateway_payment(place_order, gateway)
        lifecycle = PaymentLifecycle()
        refund_id = lifecycle.initiate_refund(payment_id, 100.0)
        lifecycle.process_refund(payment_id, refund_id, "processed")

        with pytest.raises(InvalidTransitionError):
            lifecycle.process_refund(payment_id, refund_id, "failed")
