"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements. Amounts cross this
boundary in minor units (paise), exactly as the gateway bills them. Any
failure to reach the gateway, or a response it cannot vouch for, surfaces
as ExternalGatewayError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class GatewayOrder:
    """A payment intent registered with the gateway."""

    id: str
    amount: int
    currency: str
    status: str = "created"


@dataclass(frozen=True)
class GatewayPayment:
    """The gateway's own record of a payment attempt."""

    id: str
    order_id: str | None
    status: str
    amount: int
    method: str | None = None
    captured_at: datetime | None = None


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    status: str
    amount: int = 0
    raw: dict = field(default_factory=dict, compare=False)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_order(self, order_id: str, amount_minor: int, currency: str, metadata: dict) -> GatewayOrder:
        """Register a payment intent for ``order_id``."""
        ...

    @abstractmethod
    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        """Check the checkout signature returned to the client."""
        ...

    @abstractmethod
    def fetch_payment(self, gateway_payment_id: str) -> GatewayPayment:
        ...

    @abstractmethod
    def refund(self, gateway_payment_id: str, amount_minor: int) -> GatewayRefund:
        ...
