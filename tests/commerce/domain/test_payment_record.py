"""Tests for the Payment aggregate: capture idempotency and refund bounds."""

import pytest
from protean.exceptions import ValidationError

from commerce.errors import ConflictError, InvalidTransitionError
from commerce.payment.events import PaymentCaptured
from commerce.payment.payment import Payment, PaymentStatus, RefundStatus, to_minor_units


def _payment(amount=500.0, method="gateway"):
    return Payment.create(order_id="order-001", user_id="user-001", method=method, amount=amount)


def _captured(amount=500.0):
    payment = _payment(amount)
    payment.attach_gateway_order("order_abc", to_minor_units(amount))
    payment.capture(gateway_payment_id="pay_1")
    return payment


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, minor",
        [(500.0, 50000), (55084.0, 5508400), (10.005, 1001), (0.0, 0)],
    )
    def test_to_minor_units(self, amount, minor):
        assert to_minor_units(amount) == minor


class TestCapture:
    def test_create(self):
        payment = _payment()
        assert payment.status == PaymentStatus.CREATED.value
        assert payment.amount_minor == 50000

    def test_capture_once(self):
        payment = _captured()
        assert payment.is_captured
        assert payment.gateway_payment_id == "pay_1"
        assert isinstance(payment._events[-1], PaymentCaptured)

    def test_same_capture_is_noop(self):
        payment = _captured()
        payment._events.clear()
        assert payment.capture(gateway_payment_id="pay_1") is False
        assert payment._events == []

    def test_different_gateway_payment_conflicts(self):
        payment = _captured()
        with pytest.raises(ConflictError):
            payment.capture(gateway_payment_id="pay_2")
        assert payment.gateway_payment_id == "pay_1"

    def test_cod_capture_records_collected_amount(self):
        payment = _payment(method="cod")
        payment.capture(collected_amount=480.0, amount_mismatch=True)
        assert payment.collected_amount == 480.0
        assert payment.amount_mismatch is True

    def test_fail_then_reattach(self):
        payment = _payment()
        payment.attach_gateway_order("order_1", 50000)
        payment.fail("Card declined")
        assert payment.status == PaymentStatus.FAILED.value

        payment.attach_gateway_order("order_2", 50000)
        assert payment.status == PaymentStatus.CREATED.value
        assert payment.gateway_order_id == "order_2"
        assert payment.failure_reason is None

    def test_late_success_after_failure(self):
        payment = _payment()
        payment.fail("Timeout")
        assert payment.capture(gateway_payment_id="pay_late") is True

    def test_cannot_fail_captured(self):
        with pytest.raises(ConflictError):
            _captured().fail("Too late")

    def test_cannot_reattach_captured(self):
        with pytest.raises(ConflictError):
            _captured().attach_gateway_order("order_new", 50000)


class TestRefunds:
    def test_refund_requires_capture(self):
        with pytest.raises(ValidationError):
            _payment().request_refund(100.0)

    def test_partial_refunds_accumulate(self):
        payment = _captured()
        payment.request_refund(200.0, reason="Scratched")
        payment.request_refund(300.0, reason="Scratched")
        assert payment.refunded_amount() == 500.0

    def test_refunds_cannot_exceed_amount(self):
        payment = _captured()
        payment.request_refund(400.0)
        with pytest.raises(ValidationError):
            payment.request_refund(100.01)
        assert payment.refunded_amount() == 400.0

    def test_failed_refund_frees_amount(self):
        payment = _captured()
        refund_id = payment.request_refund(500.0)
        payment.process_refund(refund_id, RefundStatus.FAILED.value)
        assert payment.refunded_amount() == 0.0
        payment.request_refund(500.0)

    def test_non_positive_refund_rejected(self):
        with pytest.raises(ValidationError):
            _captured().request_refund(0)

    def test_process_refund_once(self):
        payment = _captured()
        refund_id = payment.request_refund(100.0)
        payment.process_refund(refund_id, "processed")
        assert payment.find_refund(refund_id).status == "processed"
        with pytest.raises(InvalidTransitionError):
            payment.process_refund(refund_id, "failed")

    def test_refund_cannot_be_set_back_to_pending(self):
        payment = _captured()
        refund_id = payment.request_refund(100.0)
        with pytest.raises(ValidationError):
            payment.process_refund(refund_id, "pending")

    def test_unknown_refund(self):
        with pytest.raises(ValidationError):
            _captured().process_refund("missing", "processed")
