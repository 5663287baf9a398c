"""Catalogue adapter backed by the Product repository.

Stock updates are compare-and-swap: the product is read, the guard is checked
on the loaded version, and the write fails with ExpectedVersionError if
another request saved the product in between. Clashes are retried from a
fresh read a bounded number of times.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.catalogue.port import Catalogue, VariantSnapshot
from commerce.catalogue.product import Product, normalize_sku
from commerce.errors import ConflictError
from commerce.settings import get_settings

logger = structlog.get_logger(__name__)


def _snapshot(product: Product, variant) -> VariantSnapshot:
    return VariantSnapshot(
        product_id=str(product.id),
        product_name=product.name,
        product_image=product.image_url,
        product_active=bool(product.is_active),
        sku=variant.sku,
        karat=variant.karat,
        stone_type=variant.stone_type,
        price=variant.price,
        gross_weight=variant.gross_weight or 0.0,
        stock=variant.stock or 0,
        is_available=bool(variant.is_available),
    )


class RepositoryCatalogue(Catalogue):
    def __init__(self, max_attempts: int | None = None):
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts or get_settings().stock_cas_retries

    def _find(self, sku, product_id=None) -> Product | None:
        repo = current_domain.repository_for(Product)
        if product_id:
            try:
                return repo.get(product_id)
            except ObjectNotFoundError:
                return None
        return repo.find_by_sku(sku)

    def get_variant(self, sku, product_id=None):
        product = self._find(sku, product_id)
        if product is None:
            return None
        variant = product.variant_for(sku)
        if variant is None:
            return None
        return _snapshot(product, variant)

    def _update(self, product_id, sku, quantity, operation):
        sku = normalize_sku(sku)
        for attempt in range(1, self.max_attempts + 1):
            repo = current_domain.repository_for(Product)
            product = repo.get(product_id)
            new_stock = getattr(product, operation)(sku, quantity)
            try:
                repo.add(product)
            except ExpectedVersionError:
                logger.info(
                    "Stock write clashed with a concurrent update",
                    product_id=str(product_id),
                    sku=sku,
                    operation=operation,
                    attempt=attempt,
                )
                continue
            return new_stock

        raise ConflictError(
            f"Stock for {sku} changed concurrently {self.max_attempts} times",
            product_id=str(product_id),
            sku=sku,
        )

    def conditional_decrement_stock(self, product_id, sku, quantity):
        return self._update(product_id, sku, quantity, "decrement_stock")

    def increment_stock(self, product_id, sku, quantity):
        return self._update(product_id, sku, quantity, "increment_stock")
