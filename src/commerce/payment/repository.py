from commerce.domain import commerce
from commerce.payment.payment import Payment


@commerce.repository(part_of=Payment)
class PaymentRepository:
    def find_by_gateway_order_id(self, gateway_order_id: str) -> Payment | None:
        matches = self._dao.query.filter(gateway_order_id=gateway_order_id).all().items
        return matches[0] if matches else None

    def find_by_order_id(self, order_id) -> Payment | None:
        matches = self._dao.query.filter(order_id=str(order_id)).all().items
        return matches[0] if matches else None
