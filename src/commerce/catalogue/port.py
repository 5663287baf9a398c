"""Catalogue port (abstract interface).

The checkout, cart and stock ledger only see variants through this contract,
so the storage behind the catalogue can change without touching them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class VariantSnapshot:
    """Point-in-time view of a variant together with its product details."""

    product_id: str
    product_name: str
    product_image: str | None
    product_active: bool
    sku: str
    karat: int
    stone_type: str
    price: float
    gross_weight: float
    stock: int
    is_available: bool

    @property
    def purchasable(self) -> bool:
        return self.product_active and self.is_available


class Catalogue(ABC):
    @abstractmethod
    def get_variant(self, sku: str, product_id: str | None = None) -> VariantSnapshot | None:
        """Return the variant with ``sku`` or None when no such variant exists."""
        ...

    @abstractmethod
    def conditional_decrement_stock(self, product_id: str, sku: str, quantity: int) -> int:
        """Decrement only if ``stock >= quantity``; return the new stock.

        Raises InsufficientStockError when the guard fails.
        """
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, sku: str, quantity: int) -> int:
        """Unconditionally add ``quantity`` back; return the new stock."""
        ...
