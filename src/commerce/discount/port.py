"""Discount consumer port.

Coupon, voucher and gift card are independent instruments; each implements
this small contract and the cart holds one optional slot per kind.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class DiscountKind(Enum):
    COUPON = "coupon"
    VOUCHER = "voucher"
    GIFT_CARD = "gift_card"


@dataclass(frozen=True)
class Redemption:
    """What a consumer agreed to take off: stored in the cart's slot for ``kind``."""

    kind: DiscountKind
    code: str
    reference_id: str
    amount: float


class DiscountConsumer(ABC):
    kind: DiscountKind

    @abstractmethod
    def validate_for_redemption(self, code: str, amount: float) -> Redemption:
        """Check ``code`` against a subtotal (coupon, voucher) or a requested amount (gift card).

        Raises DiscountNotFoundError for an unknown code and ValidationError
        when the code exists but cannot be used.
        """
        ...

    @abstractmethod
    def mark_consumed(self, code: str, user_id: str, amount: float | None = None, order_ref: str | None = None) -> None:
        ...

    @abstractmethod
    def restore(self, code: str, user_id: str, amount: float | None = None, order_ref: str | None = None) -> None:
        """Undo mark_consumed for a checkout that did not complete."""
        ...
