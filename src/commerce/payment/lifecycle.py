"""PaymentLifecycle: initiation, gateway confirmation, failure, refunds, COD.

Coordinates the Payment aggregate, the Order it pays for, the gateway port
and notifications. Every check that can reject a request runs before the
first mutation, and gateway calls are made before local state changes so a
gateway error leaves order and payment as they were.

Capture never touches stock: stock was taken once, at checkout.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.utils.globals import current_domain

from commerce.errors import ConflictError, ExternalGatewayError, NotFoundError
from commerce.gateway import get_gateway
from commerce.notification import notify
from commerce.order.lifecycle import OrderLifecycle
from commerce.order.order import Order, OrderPaymentStatus, OrderStatus, PaymentMethod
from commerce.payment.capture import CapturePayment, FailPayment
from commerce.payment.initiation import AttachGatewayOrder, CreatePayment
from commerce.payment.payment import Payment, to_minor_units
from commerce.payment.refund import ProcessRefund, RequestRefund
from commerce.settings import CodAmountPolicy, get_settings

logger = structlog.get_logger(__name__)

_CLOSED_ORDER_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}

# Collected COD cash within half a paisa of the order total counts as exact
_COD_TOLERANCE = 0.005


class PaymentLifecycle:
    def __init__(self, orders: OrderLifecycle | None = None, gateway=None):
        self.orders = orders or OrderLifecycle()
        self._gateway = gateway

    @property
    def gateway(self):
        return self._gateway or get_gateway()

    @property
    def payments(self):
        return current_domain.repository_for(Payment)

    def _payment_for_gateway_order(self, gateway_order_id) -> Payment:
        payment = self.payments.find_by_gateway_order_id(gateway_order_id)
        if payment is None:
            raise NotFoundError(f"No payment for gateway order {gateway_order_id}")
        return payment

    def _payment_for_order(self, order_id) -> Payment:
        payment = self.payments.find_by_order_id(order_id)
        if payment is None:
            raise NotFoundError(f"No payment for order {order_id}")
        return payment

    def _order(self, order_id) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    # -------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------
    def initiate_payment(self, order_id, user_id, method) -> dict:
        method = PaymentMethod(method)
        order = self._order(order_id)
        if not order.is_owned_by(user_id):
            raise ValidationError({"order": ["Order does not belong to the requester"]})
        if OrderStatus(order.status) in _CLOSED_ORDER_STATES:
            raise ConflictError(f"Order is {order.status}", order_id=str(order_id))

        payment = self.payments.find_by_order_id(order_id)
        if payment is not None:
            if payment.is_captured:
                raise ConflictError("Payment already completed", order_id=str(order_id))
            if payment.method != method.value:
                raise ConflictError(
                    f"Payment already initiated as {payment.method}",
                    order_id=str(order_id),
                    method=payment.method,
                )

        if method == PaymentMethod.COD:
            return self._initiate_cod(order, payment)
        return self._initiate_gateway(order, payment)

    def _initiate_cod(self, order: Order, payment: Payment | None) -> dict:
        total = order.pricing.total
        if payment is None:
            payment_id = current_domain.process(
                CreatePayment(
                    order_id=str(order.id),
                    user_id=str(order.user_id),
                    method=PaymentMethod.COD.value,
                    amount=total,
                    currency=order.pricing.currency,
                ),
                asynchronous=False,
            )
        else:
            payment_id = str(payment.id)

        if OrderStatus(order.status) == OrderStatus.FAILED:
            self.orders.update_status(order.id, OrderStatus.PENDING.value)
            order = self._order(order.id)
        if OrderStatus(order.status) == OrderStatus.PENDING:
            self.orders.update_status(order.id, OrderStatus.PROCESSING.value)
        self.orders.record_payment_status(order.id, OrderPaymentStatus.PENDING.value, PaymentMethod.COD.value)

        logger.info("COD payment initiated", order_id=str(order.id), payment_id=payment_id, amount=total)
        return {
            "payment_id": payment_id,
            "method": PaymentMethod.COD.value,
            "amount": total,
            "currency": order.pricing.currency,
        }

    def _initiate_gateway(self, order: Order, payment: Payment | None) -> dict:
        if OrderStatus(order.status) not in (OrderStatus.PENDING, OrderStatus.FAILED):
            raise ConflictError(f"Order is {order.status}, not awaiting payment", order_id=str(order.id))

        total = order.pricing.total
        currency = order.pricing.currency
        amount_minor = to_minor_units(total)
        gateway_order = self.gateway.create_order(
            str(order.id),
            amount_minor,
            currency,
            {"order_number": order.order_number, "user_id": str(order.user_id)},
        )

        if payment is None:
            payment_id = current_domain.process(
                CreatePayment(
                    order_id=str(order.id),
                    user_id=str(order.user_id),
                    method=PaymentMethod.GATEWAY.value,
                    amount=total,
                    currency=currency,
                ),
                asynchronous=False,
            )
        else:
            payment_id = str(payment.id)
        current_domain.process(
            AttachGatewayOrder(payment_id=payment_id, gateway_order_id=gateway_order.id, amount_minor=amount_minor),
            asynchronous=False,
        )

        if OrderStatus(order.status) == OrderStatus.FAILED:
            self.orders.update_status(order.id, OrderStatus.PENDING.value)
        if order.payment_status != OrderPaymentStatus.PENDING.value:
            self.orders.record_payment_status(order.id, OrderPaymentStatus.PENDING.value, PaymentMethod.GATEWAY.value)

        logger.info(
            "Gateway payment initiated",
            order_id=str(order.id),
            payment_id=payment_id,
            gateway_order_id=gateway_order.id,
            amount_minor=amount_minor,
        )
        return {
            "payment_id": payment_id,
            "gateway_order_id": gateway_order.id,
            "amount": total,
            "amount_minor": amount_minor,
            "currency": currency,
            "key_id": get_settings().gateway_key_id,
        }

    # -------------------------------------------------------------------
    # Gateway confirmation
    # -------------------------------------------------------------------
    def handle_gateway_confirmation(self, gateway_order_id, gateway_payment_id, signature) -> dict:
        payment = self._payment_for_gateway_order(gateway_order_id)

        if not self.gateway.verify_signature(gateway_order_id, gateway_payment_id, signature):
            logger.warning("Payment signature mismatch", gateway_order_id=gateway_order_id)
            raise ExternalGatewayError("Invalid payment signature", gateway_order_id=gateway_order_id)

        if payment.is_captured:
            return self._already_captured(payment, gateway_payment_id)

        fetched = self.gateway.fetch_payment(gateway_payment_id)
        if fetched.order_id and fetched.order_id != gateway_order_id:
            raise ExternalGatewayError(
                "Gateway payment belongs to another order",
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
            )
        if fetched.status != "captured":
            raise ExternalGatewayError(
                f"Gateway reports payment as {fetched.status}",
                gateway_payment_id=gateway_payment_id,
                status=fetched.status,
            )
        if fetched.amount != payment.amount_minor:
            logger.error(
                "Gateway amount mismatch",
                payment_id=str(payment.id),
                expected=payment.amount_minor,
                actual=fetched.amount,
            )
            raise ExternalGatewayError(
                "Gateway amount does not match the order",
                expected=payment.amount_minor,
                actual=fetched.amount,
            )

        try:
            captured = current_domain.process(
                CapturePayment(
                    payment_id=str(payment.id),
                    gateway_payment_id=gateway_payment_id,
                    captured_at=fetched.captured_at,
                ),
                asynchronous=False,
            )
        except ExpectedVersionError:
            # Another confirmation saved first; judge this one against it
            return self._already_captured(self.payments.get(payment.id), gateway_payment_id)
        if not captured:
            return self._already_captured(self.payments.get(payment.id), gateway_payment_id)

        order = self._advance_paid_order(payment.order_id, PaymentMethod.GATEWAY)
        notify(
            order.customer_email,
            "payment-success",
            {"order_number": order.order_number, "amount": payment.amount, "payment_id": gateway_payment_id},
        )
        logger.info("Payment captured", payment_id=str(payment.id), order_id=str(payment.order_id))
        return {
            "payment_id": str(payment.id),
            "order_id": str(payment.order_id),
            "status": "captured",
            "already_captured": False,
        }

    def _already_captured(self, payment: Payment, gateway_payment_id) -> dict:
        if payment.gateway_payment_id != gateway_payment_id:
            raise ConflictError(
                "Payment already captured with a different gateway payment",
                payment_id=str(payment.id),
            )
        logger.info("Duplicate payment confirmation ignored", payment_id=str(payment.id))
        return {
            "payment_id": str(payment.id),
            "order_id": str(payment.order_id),
            "status": payment.status,
            "already_captured": True,
        }

    def _advance_paid_order(self, order_id, method: PaymentMethod) -> Order:
        order = self._order(order_id)
        status = OrderStatus(order.status)
        if status == OrderStatus.FAILED:
            self.orders.update_status(order_id, OrderStatus.PENDING.value)
            status = OrderStatus.PENDING
        if status == OrderStatus.PENDING:
            self.orders.update_status(order_id, OrderStatus.PROCESSING.value)
        elif status in _CLOSED_ORDER_STATES:
            logger.error("Payment captured for a closed order; refund required", order_id=str(order_id))
        return self.orders.record_payment_status(order_id, OrderPaymentStatus.CAPTURED.value, method.value)

    # -------------------------------------------------------------------
    # Failure
    # -------------------------------------------------------------------
    def handle_failure(self, gateway_order_id, reason, gateway_payment_id=None) -> dict:
        payment = self._payment_for_gateway_order(gateway_order_id)
        if payment.is_captured:
            raise ConflictError("Cannot fail a captured payment", payment_id=str(payment.id))

        current_domain.process(
            FailPayment(payment_id=str(payment.id), reason=reason, gateway_payment_id=gateway_payment_id),
            asynchronous=False,
        )

        order = self._order(payment.order_id)
        if OrderStatus(order.status) == OrderStatus.PENDING:
            self.orders.update_status(order.id, OrderStatus.FAILED.value, reason=reason)
        order = self.orders.record_payment_status(order.id, OrderPaymentStatus.FAILED.value)

        notify(order.customer_email, "payment-failed", {"order_number": order.order_number, "reason": reason})
        logger.warning("Payment failed", payment_id=str(payment.id), order_id=str(order.id), reason=reason)
        return {"payment_id": str(payment.id), "order_id": str(order.id), "status": "failed"}

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def initiate_refund(self, payment_id, amount, reason=None) -> str:
        return current_domain.process(
            RequestRefund(payment_id=payment_id, amount=amount, reason=reason),
            asynchronous=False,
        )

    def process_refund(self, payment_id, refund_id, status) -> None:
        current_domain.process(
            ProcessRefund(payment_id=payment_id, refund_id=refund_id, status=status),
            asynchronous=False,
        )
        logger.info("Refund settled", payment_id=str(payment_id), refund_id=str(refund_id), status=status)

    # -------------------------------------------------------------------
    # Cash on delivery
    # -------------------------------------------------------------------
    def confirm_cod_payment(self, order_id, collected_amount) -> dict:
        payment = self._payment_for_order(order_id)
        if not payment.is_cod:
            raise ValidationError({"payment": ["Payment is not cash on delivery"]})
        if payment.is_captured:
            raise ConflictError("Payment already completed", payment_id=str(payment.id))

        mismatch = abs(collected_amount - payment.amount) > _COD_TOLERANCE
        if mismatch:
            if get_settings().cod_amount_policy == CodAmountPolicy.STRICT:
                raise ValidationError(
                    {"collected_amount": [f"Collected {collected_amount} does not match order total {payment.amount}"]}
                )
            logger.warning(
                "COD amount mismatch",
                order_id=str(order_id),
                expected=payment.amount,
                collected=collected_amount,
            )

        current_domain.process(
            CapturePayment(
                payment_id=str(payment.id),
                collected_amount=collected_amount,
                amount_mismatch=mismatch,
            ),
            asynchronous=False,
        )
        order = self._advance_paid_order(order_id, PaymentMethod.COD)
        notify(
            order.customer_email,
            "payment-success",
            {"order_number": order.order_number, "amount": collected_amount, "payment_id": str(payment.id)},
        )
        return {
            "payment_id": str(payment.id),
            "order_id": str(order_id),
            "status": "captured",
            "amount_mismatch": mismatch,
            "collected_amount": collected_amount,
        }
