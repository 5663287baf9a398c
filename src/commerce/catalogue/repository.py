from commerce.catalogue.product import Product, normalize_sku
from commerce.domain import commerce


@commerce.repository(part_of=Product)
class ProductRepository:
    """Lookups the catalogue needs beyond fetch-by-id."""

    def find_by_sku(self, sku: str) -> Product | None:
        sku = normalize_sku(sku)
        for product in self._dao.query.all().items:
            if product.variant_for(sku) is not None:
                return product
        return None

    def find_by_code(self, product_code: str) -> Product | None:
        matches = self._dao.query.filter(product_code=product_code).all().items
        return matches[0] if matches else None

    def active_products(self) -> list[Product]:
        return self._dao.query.filter(is_active=True).all().items
