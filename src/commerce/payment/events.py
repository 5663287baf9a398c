"""Domain events for the Payment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Payment")
class PaymentCreated:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    created_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class GatewayOrderAttached:
    """A gateway payment intent was (re)created for this payment."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_order_id = String(required=True)
    amount_minor = Integer(required=True)
    attached_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class PaymentCaptured:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    gateway_payment_id = String()
    collected_amount = Float()
    amount_mismatch = Boolean(default=False)
    captured_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    gateway_payment_id = String()
    failed_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class RefundRequested:
    __version__ = 1

    payment_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String()
    gateway_refund_id = String()
    requested_at = DateTime(required=True)


@commerce.event(part_of="Payment")
class RefundProcessed:
    __version__ = 1

    payment_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    status = String(required=True)  # processed | failed
    processed_at = DateTime(required=True)
