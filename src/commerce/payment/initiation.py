"""Payment initiation: commands and handler.

CreatePayment opens the single payment record for an order. The gateway
token is stored separately by AttachGatewayOrder so that re-initiating a
failed payment reuses the same record.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import PaymentMethod
from commerce.payment.payment import Payment


@commerce.command(part_of="Payment")
class CreatePayment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    method = String(required=True, choices=PaymentMethod)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="INR")


@commerce.command(part_of="Payment")
class AttachGatewayOrder:
    payment_id = Identifier(required=True)
    gateway_order_id = String(required=True, max_length=255)
    amount_minor = Integer(required=True, min_value=0)


@commerce.command_handler(part_of=Payment)
class PaymentInitiationHandler:
    @handle(CreatePayment)
    def create_payment(self, command):
        payment = Payment.create(
            order_id=command.order_id,
            user_id=command.user_id,
            method=command.method,
            amount=command.amount,
            currency=command.currency or "INR",
        )
        current_domain.repository_for(Payment).add(payment)
        return str(payment.id)

    @handle(AttachGatewayOrder)
    def attach_gateway_order(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.attach_gateway_order(command.gateway_order_id, command.amount_minor)
        repo.add(payment)
