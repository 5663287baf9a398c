"""Payment refund: commands and handler.

RequestRefund asks the gateway first and records the pending refund only
once the gateway accepted it, so a gateway error leaves the payment as it
was. ProcessRefund settles a pending refund; stock is never touched.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.gateway import get_gateway
from commerce.payment.payment import Payment, RefundStatus, to_minor_units

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Payment")
class RequestRefund:
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(max_length=500)


@commerce.command(part_of="Payment")
class ProcessRefund:
    payment_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    status = String(required=True, choices=RefundStatus)


@commerce.command_handler(part_of=Payment)
class RefundHandler:
    @handle(RequestRefund)
    def request_refund(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.check_refundable(command.amount)

        gateway_refund_id = None
        if not payment.is_cod:
            gateway_refund = get_gateway().refund(payment.gateway_payment_id, to_minor_units(command.amount))
            gateway_refund_id = gateway_refund.id

        refund_id = payment.request_refund(
            amount=command.amount,
            reason=command.reason,
            gateway_refund_id=gateway_refund_id,
        )
        repo.add(payment)
        logger.info(
            "Refund requested",
            payment_id=str(payment.id),
            refund_id=refund_id,
            amount=command.amount,
            gateway_refund_id=gateway_refund_id,
        )
        return refund_id

    @handle(ProcessRefund)
    def process_refund(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.process_refund(command.refund_id, command.status)
        repo.add(payment)
