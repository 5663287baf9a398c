"""Payment capture and failure: commands and handler.

The capture handler re-checks the payment it loads, so a confirmation that
raced another one either finds the capture already recorded (no-op) or loses
the version check on save.
"""

from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.payment.payment import Payment


@commerce.command(part_of="Payment")
class CapturePayment:
    payment_id = Identifier(required=True)
    gateway_payment_id = String(max_length=255)
    collected_amount = Float()
    amount_mismatch = Boolean(default=False)
    captured_at = DateTime()


@commerce.command(part_of="Payment")
class FailPayment:
    payment_id = Identifier(required=True)
    reason = String(max_length=500)
    gateway_payment_id = String(max_length=255)


@commerce.command_handler(part_of=Payment)
class PaymentCaptureHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        captured = payment.capture(
            gateway_payment_id=command.gateway_payment_id,
            collected_amount=command.collected_amount,
            amount_mismatch=command.amount_mismatch,
            captured_at=command.captured_at,
        )
        if captured:
            repo.add(payment)
        return captured

    @handle(FailPayment)
    def fail_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.fail(reason=command.reason, gateway_payment_id=command.gateway_payment_id)
        repo.add(payment)
