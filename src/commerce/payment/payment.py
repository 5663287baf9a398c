"""Payment aggregate (CQRS): one payment per order.

Payments are looked up by the gateway's order token when a confirmation or
failure arrives, so the aggregate is stored as a queryable record rather than
an event stream. Every mutation still raises a domain event.

State Machine:
    CREATED → CAPTURED
    CREATED → FAILED → CREATED (re-initiation with a new gateway token)
    FAILED → CAPTURED (late success reported by the gateway)

Refund sub-flow (captured payments only):
    PENDING → PROCESSED | FAILED
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from commerce.domain import commerce
from commerce.errors import ConflictError, InvalidTransitionError
from commerce.order.order import PaymentMethod
from commerce.payment.events import (
    GatewayOrderAttached,
    PaymentCaptured,
    PaymentCreated,
    PaymentFailed,
    RefundProcessed,
    RefundRequested,
)
from commerce.utils.clock import utcnow


class PaymentStatus(Enum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"


class RefundStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    PaymentStatus.CREATED: {PaymentStatus.CAPTURED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.CREATED, PaymentStatus.CAPTURED},
    PaymentStatus.CAPTURED: set(),  # Terminal; refunds live on their own records
}


def to_minor_units(amount: float) -> int:
    """Rupees to paise, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@commerce.entity(part_of="Payment")
class Refund:
    amount = Float(required=True, min_value=0.01)
    reason = String(max_length=500)
    status = String(choices=RefundStatus, default=RefundStatus.PENDING.value)
    gateway_refund_id = String(max_length=255)
    requested_at = DateTime(required=True)
    processed_at = DateTime()


@commerce.aggregate
class Payment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    method = String(choices=PaymentMethod, required=True)
    amount = Float(required=True, min_value=0.0)
    amount_minor = Integer()
    currency = String(max_length=3, default="INR")
    status = String(choices=PaymentStatus, default=PaymentStatus.CREATED.value)
    gateway_order_id = String(max_length=255)
    gateway_payment_id = String(max_length=255)
    failure_reason = String(max_length=500)
    collected_amount = Float()
    amount_mismatch = Boolean(default=False)
    refunds = HasMany(Refund)
    captured_at = DateTime()
    failed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunds_cannot_exceed_captured_amount(self):
        if self.refunded_amount() > (self.amount or 0.0) + 1e-9:
            raise ValidationError({"refunds": ["Refunds cannot exceed the captured amount"]})

    @classmethod
    def create(cls, order_id, user_id, method, amount, currency="INR"):
        now = utcnow()
        payment = cls(
            order_id=str(order_id),
            user_id=str(user_id),
            method=PaymentMethod(method).value,
            amount=amount,
            amount_minor=to_minor_units(amount),
            currency=currency,
            status=PaymentStatus.CREATED.value,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentCreated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                user_id=str(user_id),
                method=payment.method,
                amount=amount,
                currency=currency,
                created_at=now,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_captured(self) -> bool:
        return self.status == PaymentStatus.CAPTURED.value

    @property
    def is_cod(self) -> bool:
        return self.method == PaymentMethod.COD.value

    def refunded_amount(self) -> float:
        """Amount promised back to the customer: pending plus processed refunds."""
        return round(
            sum(r.amount for r in (self.refunds or []) if r.status != RefundStatus.FAILED.value),
            2,
        )

    def find_refund(self, refund_id) -> Refund:
        refund = next((r for r in (self.refunds or []) if str(r.id) == str(refund_id)), None)
        if refund is None:
            raise ValidationError({"refund_id": ["Refund not found"]})
        return refund

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(current.value, target_status.value, entity="payment")

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def attach_gateway_order(self, gateway_order_id: str, amount_minor: int) -> None:
        """Store a fresh gateway token; a failed payment goes back to created."""
        if self.is_captured:
            raise ConflictError("Payment already completed", payment_id=str(self.id))
        if self.status == PaymentStatus.FAILED.value:
            self._assert_can_transition(PaymentStatus.CREATED)
            self.status = PaymentStatus.CREATED.value
            self.failure_reason = None

        now = utcnow()
        self.gateway_order_id = gateway_order_id
        self.amount_minor = amount_minor
        self.updated_at = now
        self.raise_(
            GatewayOrderAttached(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                gateway_order_id=gateway_order_id,
                amount_minor=amount_minor,
                attached_at=now,
            )
        )

    def capture(self, gateway_payment_id=None, collected_amount=None, amount_mismatch=False, captured_at=None) -> bool:
        """Capture once. Returns False when this exact capture was already recorded.

        A second capture carrying a different gateway payment id is a
        duplicate attempt and raises ConflictError.
        """
        if self.is_captured:
            if gateway_payment_id is None or gateway_payment_id == self.gateway_payment_id:
                return False
            raise ConflictError(
                "Payment already captured with a different gateway payment",
                payment_id=str(self.id),
                captured_with=self.gateway_payment_id,
                attempted=gateway_payment_id,
            )

        self._assert_can_transition(PaymentStatus.CAPTURED)
        now = captured_at or utcnow()
        self.status = PaymentStatus.CAPTURED.value
        self.gateway_payment_id = gateway_payment_id
        self.collected_amount = collected_amount
        self.amount_mismatch = bool(amount_mismatch)
        self.failure_reason = None
        self.captured_at = now
        self.updated_at = now
        self.raise_(
            PaymentCaptured(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                method=self.method,
                amount=self.amount,
                gateway_payment_id=gateway_payment_id,
                collected_amount=collected_amount,
                amount_mismatch=self.amount_mismatch,
                captured_at=now,
            )
        )
        return True

    def fail(self, reason, gateway_payment_id=None) -> None:
        if self.is_captured:
            raise ConflictError("Cannot fail a captured payment", payment_id=str(self.id))

        now = utcnow()
        if self.status != PaymentStatus.FAILED.value:
            self._assert_can_transition(PaymentStatus.FAILED)
            self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason
        if gateway_payment_id:
            self.gateway_payment_id = gateway_payment_id
        self.failed_at = now
        self.updated_at = now
        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                gateway_payment_id=gateway_payment_id,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def check_refundable(self, amount: float) -> None:
        if not self.is_captured:
            raise ValidationError({"status": ["Refunds can only be requested for captured payments"]})
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if round(self.refunded_amount() + amount, 2) > self.amount:
            raise ValidationError(
                {
                    "amount": [
                        f"Refund total ({round(self.refunded_amount() + amount, 2)}) "
                        f"would exceed payment amount ({self.amount})"
                    ]
                }
            )

    def request_refund(self, amount: float, reason=None, gateway_refund_id=None) -> str:
        """Record a pending refund and return its id."""
        self.check_refundable(amount)

        now = utcnow()
        refund_id = str(uuid4())
        self.add_refunds(
            Refund(
                id=refund_id,
                amount=amount,
                reason=reason,
                status=RefundStatus.PENDING.value,
                gateway_refund_id=gateway_refund_id,
                requested_at=now,
            )
        )
        self.updated_at = now
        self.raise_(
            RefundRequested(
                payment_id=str(self.id),
                refund_id=refund_id,
                order_id=str(self.order_id),
                amount=amount,
                reason=reason,
                gateway_refund_id=gateway_refund_id,
                requested_at=now,
            )
        )
        return refund_id

    def process_refund(self, refund_id, status) -> None:
        status = RefundStatus(status)
        if status == RefundStatus.PENDING:
            raise ValidationError({"status": ["A refund can only be processed or failed"]})

        refund = self.find_refund(refund_id)
        if refund.status != RefundStatus.PENDING.value:
            raise InvalidTransitionError(refund.status, status.value, entity="refund")

        now = utcnow()
        refund.status = status.value
        refund.processed_at = now
        self.updated_at = now
        self.raise_(
            RefundProcessed(
                payment_id=str(self.id),
                refund_id=str(refund_id),
                order_id=str(self.order_id),
                amount=refund.amount,
                status=status.value,
                processed_at=now,
            )
        )
