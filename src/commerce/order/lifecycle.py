"""Order lifecycle: status commands, handlers and the OrderLifecycle service.

The command handlers only move the aggregate through its transition table.
Stock for cancelled and returned orders is released by ``OrderLifecycle``
once the transition has been persisted, so a rejected transition never
touches the catalogue.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import InternalInconsistencyError
from commerce.inventory.ledger import StockLedger
from commerce.order.order import STOCK_RELEASING_STATES, Order, OrderPaymentStatus, OrderStatus, PaymentMethod
from commerce.settings import get_settings

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    tracking_number = String(max_length=64)
    reason = String(max_length=500)


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    reason = String(max_length=500)
    as_admin = Boolean(default=False)


@commerce.command(part_of="Order")
class ReturnOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    reason = String(max_length=500)
    as_admin = Boolean(default=False)


@commerce.command(part_of="Order")
class RecordOrderPayment:
    order_id = Identifier(required=True)
    payment_status = String(required=True, choices=OrderPaymentStatus)
    payment_method = String(choices=PaymentMethod)


def _assert_owner(order: Order, requester_id, as_admin: bool) -> None:
    if not as_admin and not order.is_owned_by(requester_id):
        raise ValidationError({"order": ["Order does not belong to the requester"]})


@commerce.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.transition_to(
            command.status,
            tracking_number=command.tracking_number,
            reason=command.reason,
            eta_days=get_settings().delivery_eta_days,
        )
        repo.add(order)
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _assert_owner(order, command.requester_id, command.as_admin)
        order.cancel(
            reason=command.reason,
            cancelled_by="admin" if command.as_admin else str(command.requester_id),
        )
        repo.add(order)
        return order.status

    @handle(ReturnOrder)
    def return_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _assert_owner(order, command.requester_id, command.as_admin)
        order.mark_returned(
            reason=command.reason,
            returned_by="admin" if command.as_admin else str(command.requester_id),
        )
        repo.add(order)
        return order.status

    @handle(RecordOrderPayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment_status(command.payment_status, command.payment_method)
        repo.add(order)
        return order.payment_status


class OrderLifecycle:
    """Drives order transitions and the stock they give back."""

    def __init__(self, ledger: StockLedger | None = None):
        self.ledger = ledger or StockLedger()

    def get(self, order_id) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    def update_status(self, order_id, status, tracking_number=None, reason=None) -> Order:
        current_domain.process(
            UpdateOrderStatus(
                order_id=order_id,
                status=OrderStatus(status).value,
                tracking_number=tracking_number,
                reason=reason,
            ),
            asynchronous=False,
        )
        return self._after_transition(order_id)

    def cancel(self, order_id, requester_id, reason=None, as_admin=False) -> Order:
        current_domain.process(
            CancelOrder(order_id=order_id, requester_id=requester_id, reason=reason, as_admin=as_admin),
            asynchronous=False,
        )
        return self._after_transition(order_id)

    def return_order(self, order_id, requester_id, reason=None, as_admin=False) -> Order:
        current_domain.process(
            ReturnOrder(order_id=order_id, requester_id=requester_id, reason=reason, as_admin=as_admin),
            asynchronous=False,
        )
        return self._after_transition(order_id)

    def record_payment_status(self, order_id, payment_status, payment_method=None) -> Order:
        current_domain.process(
            RecordOrderPayment(
                order_id=order_id,
                payment_status=OrderPaymentStatus(payment_status).value,
                payment_method=PaymentMethod(payment_method).value if payment_method else None,
            ),
            asynchronous=False,
        )
        return self.get(order_id)

    def _after_transition(self, order_id) -> Order:
        order = self.get(order_id)
        logger.info("Order status changed", order_id=str(order_id), status=order.status)
        if OrderStatus(order.status) in STOCK_RELEASING_STATES:
            self._release_stock(order)
        return order

    def _release_stock(self, order: Order) -> None:
        try:
            self.ledger.release_all(order.stock_lines())
        except InternalInconsistencyError as exc:
            logger.error(
                "Order stock release incomplete",
                order_id=str(order.id),
                order_number=order.order_number,
                failures=exc.details.get("failures"),
            )
            raise InternalInconsistencyError(
                f"Stock for order {order.order_number} was not fully released",
                order_id=str(order.id),
                failures=exc.details.get("failures"),
            ) from exc
