"""Configurable fake payment gateway for development and testing.

Simulates the gateway in memory: orders and payments are kept in dicts and
signatures are real HMACs over the configured secret, so the whole
confirmation path (signature, fetch, amount check) runs without network.
Tests drive it with simulate_payment() and configure().
"""

from datetime import UTC, datetime
from uuid import uuid4

from commerce.errors import ExternalGatewayError
from commerce.gateway.port import GatewayOrder, GatewayPayment, GatewayRefund, PaymentGateway
from commerce.gateway.signature import sign, verify


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, key_secret: str = "rzp_test_secret") -> None:
        self.key_secret = key_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.orders: dict[str, GatewayOrder] = {}
        self.payments: dict[str, GatewayPayment] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _check(self):
        if not self.should_succeed:
            raise ExternalGatewayError(self.failure_reason)

    def create_order(self, order_id: str, amount_minor: int, currency: str, metadata: dict) -> GatewayOrder:
        self.calls.append(
            {
                "method": "create_order",
                "order_id": order_id,
                "amount": amount_minor,
                "currency": currency,
                "metadata": metadata,
            }
        )
        self._check()
        gateway_order = GatewayOrder(id=f"order_{uuid4().hex[:14]}", amount=amount_minor, currency=currency)
        self.orders[gateway_order.id] = gateway_order
        return gateway_order

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        return verify(gateway_order_id, gateway_payment_id, signature, self.key_secret)

    def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        self.calls.append({"method": "fetch_payment", "gateway_payment_id": gateway_payment_id})
        self._check()
        payment = self.payments.get(gateway_payment_id)
        if payment is None:
            raise ExternalGatewayError(f"Gateway has no payment {gateway_payment_id}")
        return payment

    def refund(self, gateway_payment_id: str, amount_minor: int) -> GatewayRefund:
        self.calls.append({"method": "refund", "gateway_payment_id": gateway_payment_id, "amount": amount_minor})
        self._check()
        return GatewayRefund(id=f"rfnd_{uuid4().hex[:14]}", status="pending", amount=amount_minor)

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def simulate_payment(
        self,
        gateway_order_id: str,
        amount: int | None = None,
        status: str = "captured",
        method: str = "card",
    ) -> tuple[str, str]:
        """Record a customer payment against a gateway order.

        Returns (gateway_payment_id, signature) as the checkout widget would.
        """
        order = self.orders.get(gateway_order_id)
        payment = GatewayPayment(
            id=f"pay_{uuid4().hex[:14]}",
            order_id=gateway_order_id,
            status=status,
            amount=amount if amount is not None else (order.amount if order else 0),
            method=method,
            captured_at=datetime.now(UTC) if status == "captured" else None,
        )
        self.payments[payment.id] = payment
        return payment.id, sign(gateway_order_id, payment.id, self.key_secret)

    def reset(self) -> None:
        self.should_succeed = True
        self.failure_reason = "Gateway unavailable"
        self.orders.clear()
        self.payments.clear()
        self.calls.clear()
