"""Tests for PaymentLifecycle: gateway confirmation, failure, retry and COD."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from commerce.catalogue import get_catalogue
from commerce.checkout.orchestrator import CheckoutOrchestrator, CheckoutRequest
from commerce.errors import ConflictError, ExternalGatewayError
from commerce.order.lifecycle import OrderLifecycle
from commerce.order.order import OrderStatus
from commerce.payment.capture import CapturePayment
from commerce.payment.lifecycle import PaymentLifecycle
from commerce.payment.payment import Payment, PaymentStatus
from commerce.settings import CodAmountPolicy, CommerceSettings, set_settings


def _payment(order_id):
    return current_domain.repository_for(Payment).find_by_order_id(order_id)


def _order(order_id):
    return OrderLifecycle().get(order_id)


def _initiate(order_id, method="gateway", user_id="user-001"):
    return PaymentLifecycle().initiate_payment(order_id, user_id, method)


def _pay(gateway, order_id, **kwargs):
    """Initiate, pay at the gateway and confirm; returns (initiation, confirmation)."""
    initiation = _initiate(order_id)
    payment_id, signature = gateway.simulate_payment(initiation["gateway_order_id"], **kwargs)
    confirmation = PaymentLifecycle().handle_gateway_confirmation(
        initiation["gateway_order_id"], payment_id, signature
    )
    return initiation, confirmation


class TestInitiation:
    def test_gateway_order_created(self, place_order, gateway):
        order_id = place_order(total=500.0)

        result = _initiate(order_id)

        assert result["amount"] == 500.0
        assert result["amount_minor"] == 50000
        assert result["currency"] == "INR"
        assert result["gateway_order_id"] in gateway.orders
        assert _payment(order_id).status == PaymentStatus.CREATED.value

    def test_gateway_error_leaves_no_payment(self, place_order, gateway):
        order_id = place_order()
        gateway.configure(should_succeed=False)

        with pytest.raises(ExternalGatewayError):
            _initiate(order_id)
        assert _payment(order_id) is None

    def test_only_owner_may_pay(self, place_order, gateway):
        with pytest.raises(ValidationError):
            _initiate(place_order(), user_id="user-999")

    def test_reinitiating_reuses_payment(self, place_order, gateway):
        order_id = place_order()
        first = _initiate(order_id)
        second = _initiate(order_id)
        assert first["payment_id"] == second["payment_id"]
        assert first["gateway_order_id"] != second["gateway_order_id"]

    def test_switching_method_rejected(self, place_order, gateway):
        order_id = place_order()
        _initiate(order_id)
        with pytest.raises(ConflictError):
            _initiate(order_id, method="cod")

    def test_cancelled_order_cannot_be_paid(self, ring, add_to_cart, address, gateway):
        add_to_cart(ring)
        order_id = CheckoutOrchestrator().checkout(CheckoutRequest(user_id="user-001", shipping_address=address)).order_id
        OrderLifecycle().cancel(order_id, "user-001")

        with pytest.raises(ConflictError):
            _initiate(order_id)


class TestGatewayConfirmation:
    def test_capture_advances_order(self, place_order, gateway, notifier):
        order_id = place_order(total=500.0)

        _, confirmation = _pay(gateway, order_id)

        assert confirmation["status"] == "captured"
        assert confirmation["already_captured"] is False
        payment = _payment(order_id)
        assert payment.is_captured
        order = _order(order_id)
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == "captured"
        assert order.estimated_delivery_date is not None
        assert "payment-success" in notifier.templates_sent()

    def test_duplicate_confirmation_is_noop(self, place_order, gateway):
        order_id = place_order()
        initiation = _initiate(order_id)
        payment_id, signature = gateway.simulate_payment(initiation["gateway_order_id"])
        lifecycle = PaymentLifecycle()

        lifecycle.handle_gateway_confirmation(initiation["gateway_order_id"], payment_id, signature)
        again = lifecycle.handle_gateway_confirmation(initiation["gateway_order_id"], payment_id, signature)

        assert again["already_captured"] is True
        assert _order(order_id).status == OrderStatus.PROCESSING.value

    def test_second_gateway_payment_conflicts(self, place_order, gateway):
        order_id = place_order()
        initiation, _ = _pay(gateway, order_id)
        other_id, other_signature = gateway.simulate_payment(initiation["gateway_order_id"])

        with pytest.raises(ConflictError):
            PaymentLifecycle().handle_gateway_confirmation(initiation["gateway_order_id"], other_id, other_signature)

    def test_bad_signature_rejected(self, place_order, gateway):
        order_id = place_order()
        initiation = _initiate(order_id)
        payment_id, _ = gateway.simulate_payment(initiation["gateway_order_id"])

        with pytest.raises(ExternalGatewayError):
            PaymentLifecycle().handle_gateway_confirmation(initiation["gateway_order_id"], payment_id, "forged")
        assert not _payment(order_id).is_captured
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_amount_mismatch_rejected(self, place_order, gateway):
        order_id = place_order(total=500.0)
        with pytest.raises(ExternalGatewayError):
            _pay(gateway, order_id, amount=100)
        assert not _payment(order_id).is_captured

    def test_uncaptured_gateway_payment_rejected(self, place_order, gateway):
        order_id = place_order()
        with pytest.raises(ExternalGatewayError):
            _pay(gateway, order_id, status="authorized")

    def test_unknown_gateway_order(self, gateway):
        with pytest.raises(ObjectNotFoundError):
            PaymentLifecycle().handle_gateway_confirmation("order_missing", "pay_1", "sig")

    def test_capture_does_not_touch_stock(self, ring, add_to_cart, address, gateway):
        add_to_cart(ring, quantity=2)
        order_id = CheckoutOrchestrator().checkout(CheckoutRequest(user_id="user-001", shipping_address=address)).order_id

        _pay(gateway, order_id)

        assert get_catalogue().get_variant("RNG-001-18K").stock == 3

    def test_repeated_capture_command_is_noop(self, place_order, gateway):
        order_id = place_order()
        _pay(gateway, order_id)
        payment = _payment(order_id)

        captured = current_domain.process(
            CapturePayment(payment_id=str(payment.id), gateway_payment_id=payment.gateway_payment_id),
            asynchronous=False,
        )
        assert captured is False

    def test_already_paid_order_cannot_be_reinitiated(self, place_order, gateway):
        order_id = place_order()
        _pay(gateway, order_id)
        with pytest.raises(ConflictError):
            _initiate(order_id)


class TestFailureAndRetry:
    def test_failure_marks_order_failed(self, place_order, gateway, notifier):
        order_id = place_order()
        initiation = _initiate(order_id)

        result = PaymentLifecycle().handle_failure(initiation["gateway_order_id"], "Card declined")

        assert result["status"] == "failed"
        order = _order(order_id)
        assert order.status == OrderStatus.FAILED.value
        assert order.payment_status == "failed"
        assert _payment(order_id).failure_reason == "Card declined"
        assert "payment-failed" in notifier.templates_sent()

    def test_retry_after_failure(self, place_order, gateway):
        order_id = place_order()
        first = _initiate(order_id)
        PaymentLifecycle().handle_failure(first["gateway_order_id"], "Card declined")

        _, confirmation = _pay(gateway, order_id)

        assert confirmation["status"] == "captured"
        assert _order(order_id).status == OrderStatus.PROCESSING.value

    def test_late_success_after_failure(self, place_order, gateway):
        order_id = place_order()
        initiation = _initiate(order_id)
        payment_id, signature = gateway.simulate_payment(initiation["gateway_order_id"])
        PaymentLifecycle().handle_failure(initiation["gateway_order_id"], "Timeout")

        PaymentLifecycle().handle_gateway_confirmation(initiation["gateway_order_id"], payment_id, signature)

        assert _payment(order_id).is_captured
        assert _order(order_id).status == OrderStatus.PROCESSING.value

    def test_captured_payment_cannot_fail(self, place_order, gateway):
        order_id = place_order()
        initiation, _ = _pay(gateway, order_id)
        with pytest.raises(ConflictError):
            PaymentLifecycle().handle_failure(initiation["gateway_order_id"], "Chargeback")


class TestCashOnDelivery:
    def _cod_order(self, place_order, total=500.0):
        order_id = place_order(total=total, payment_method="cod")
        _initiate(order_id, method="cod")
        return order_id

    def test_initiation_moves_order_to_processing(self, place_order):
        order_id = self._cod_order(place_order)
        order = _order(order_id)
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == "pending"
        assert _payment(order_id).is_cod

    def test_exact_amount(self, place_order, notifier):
        order_id = self._cod_order(place_order)

        result = PaymentLifecycle().confirm_cod_payment(order_id, 500.0)

        assert result["amount_mismatch"] is False
        assert _payment(order_id).is_captured
        assert _order(order_id).payment_status == "captured"
        assert "payment-success" in notifier.templates_sent()

    def test_sub_paisa_difference_is_exact(self, place_order):
        order_id = self._cod_order(place_order)
        assert PaymentLifecycle().confirm_cod_payment(order_id, 500.004)["amount_mismatch"] is False

    def test_tolerant_policy_flags_mismatch(self, place_order):
        order_id = self._cod_order(place_order)

        result = PaymentLifecycle().confirm_cod_payment(order_id, 480.0)

        assert result["amount_mismatch"] is True
        payment = _payment(order_id)
        assert payment.is_captured
        assert payment.collected_amount == 480.0
        assert payment.amount_mismatch is True

    def test_strict_policy_rejects_mismatch(self, place_order):
        set_settings(CommerceSettings(cod_amount_policy=CodAmountPolicy.STRICT))
        order_id = self._cod_order(place_order)

        with pytest.raises(ValidationError):
            PaymentLifecycle().confirm_cod_payment(order_id, 480.0)
        assert not _payment(order_id).is_captured

    def test_strict_policy_accepts_exact_amount(self, place_order):
        set_settings(CommerceSettings(cod_amount_policy=CodAmountPolicy.STRICT))
        order_id = self._cod_order(place_order)
        assert PaymentLifecycle().confirm_cod_payment(order_id, 500.0)["status"] == "captured"

    def test_confirm_twice_rejected(self, place_order):
        order_id = self._cod_order(place_order)
        PaymentLifecycle().confirm_cod_payment(order_id, 500.0)
        with pytest.raises(ConflictError):
            PaymentLifecycle().confirm_cod_payment(order_id, 500.0)

    def test_gateway_payment_is_not_cod(self, place_order, gateway):
        order_id = place_order()
        _initiate(order_id)
        with pytest.raises(ValidationError):
            PaymentLifecycle().confirm_cod_payment(order_id, 500.0)

    def test_without_payment(self, place_order):
        with pytest.raises(ObjectNotFoundError):
            PaymentLifecycle().confirm_cod_payment(place_order(payment_method="cod"), 500.0)
