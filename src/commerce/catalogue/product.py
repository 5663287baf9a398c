"""Product aggregate root with its purchasable Variants.

A Product is one jewelry design; its weights are shared by every variant.
Each Variant is a karat/stone-type combination with its own SKU, price and
stock. Stock only moves through decrement_stock/increment_stock, which the
catalogue adapter calls under an optimistic version check.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String

from commerce.catalogue.events import (
    ProductRegistered,
    StockDecremented,
    StockIncremented,
    VariantAdded,
    VariantRepriced,
)
from commerce.domain import commerce
from commerce.errors import InsufficientStockError
from commerce.pricing.rates import RateSnapshot
from commerce.pricing.variant_price import ChainAddon, StoneType, WeightInputs, compute_variant_price


def normalize_sku(sku: str) -> str:
    return (sku or "").strip().upper()


@commerce.entity(part_of="Product")
class Variant:
    karat: Integer(required=True)
    stone_type: String(max_length=30, choices=StoneType, default=StoneType.REGULAR_DIAMOND.value)
    sku: String(required=True, max_length=64)
    price: Float(min_value=0.0, default=0.0)
    gross_weight: Float(min_value=0.0, default=0.0)
    stock: Integer(min_value=0, default=0)
    is_available: Boolean(default=True)


@commerce.aggregate
class Product:
    name: String(required=True, max_length=255)
    product_code: String(required=True, max_length=64)
    image_url: String(max_length=500)
    is_active: Boolean(default=True)
    net_weight: Float(min_value=0.0, default=0.0)
    solitaire_weight: Float(min_value=0.0, default=0.0)
    multi_diamond_weight: Float(min_value=0.0, default=0.0)
    pointer_weight: Float(min_value=0.0, default=0.0)
    gemstone_solitaire_weight: Float(min_value=0.0, default=0.0)
    gemstone_pointer_weight: Float(min_value=0.0, default=0.0)
    is_pendant_with_chain: Boolean(default=False)
    chain_karat: Integer()
    variants: HasMany(Variant)
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def variant_skus_must_be_unique(self):
        skus = [v.sku for v in self.variants]
        if len(skus) != len(set(skus)):
            raise ValidationError({"variants": ["Variant SKUs must be unique within a product"]})

    @invariant.post
    def variant_stock_cannot_be_negative(self):
        for variant in self.variants:
            if variant.stock is not None and variant.stock < 0:
                raise ValidationError({"stock": [f"Stock for {variant.sku} cannot be negative"]})

    @classmethod
    def register(cls, name, product_code, weights: WeightInputs, image_url=None, is_pendant_with_chain=False, chain_karat=None):
        now = datetime.now(UTC)
        product = cls(
            name=name,
            product_code=product_code,
            image_url=image_url,
            net_weight=weights.net_weight,
            solitaire_weight=weights.solitaire_weight,
            multi_diamond_weight=weights.multi_diamond_weight,
            pointer_weight=weights.pointer_weight,
            gemstone_solitaire_weight=weights.gemstone_solitaire_weight,
            gemstone_pointer_weight=weights.gemstone_pointer_weight,
            is_pendant_with_chain=is_pendant_with_chain,
            chain_karat=chain_karat,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                product_code=product_code,
                name=name,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Pricing inputs
    # -------------------------------------------------------------------
    def weight_inputs(self) -> WeightInputs:
        return WeightInputs(
            net_weight=self.net_weight or 0.0,
            solitaire_weight=self.solitaire_weight or 0.0,
            multi_diamond_weight=self.multi_diamond_weight or 0.0,
            pointer_weight=self.pointer_weight or 0.0,
            gemstone_solitaire_weight=self.gemstone_solitaire_weight or 0.0,
            gemstone_pointer_weight=self.gemstone_pointer_weight or 0.0,
        )

    def chain_addon(self) -> ChainAddon | None:
        if not self.is_pendant_with_chain:
            return None
        return ChainAddon(karat=self.chain_karat)

    # -------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------
    def variant_for(self, sku):
        sku = normalize_sku(sku)
        return next((v for v in self.variants if v.sku == sku), None)

    def _require_variant(self, sku):
        variant = self.variant_for(sku)
        if variant is None:
            raise ValidationError({"sku": [f"Variant {sku} not found on product {self.id}"]})
        return variant

    def add_variant(self, karat, stone_type, sku, rates: RateSnapshot, stock=0, is_available=True):
        sku = normalize_sku(sku)
        if not sku:
            raise ValidationError({"sku": ["SKU is required"]})
        if self.variant_for(sku) is not None:
            raise ValidationError({"sku": [f"Variant {sku} already exists"]})

        breakdown = compute_variant_price(self.weight_inputs(), karat, stone_type, self.chain_addon(), rates)
        variant = Variant(
            karat=karat,
            stone_type=StoneType(stone_type).value,
            sku=sku,
            price=float(breakdown.price),
            gross_weight=breakdown.gross_weight,
            stock=stock,
            is_available=is_available,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            VariantAdded(
                product_id=str(self.id),
                sku=sku,
                karat=karat,
                stone_type=variant.stone_type,
                price=variant.price,
                stock=stock,
            )
        )
        return variant

    def set_availability(self, sku, is_available: bool):
        variant = self._require_variant(sku)
        variant.is_available = is_available
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def decrement_stock(self, sku, quantity: int) -> int:
        """Take ``quantity`` units out of a variant, refusing to go below zero."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self._require_variant(sku)
        previous = variant.stock or 0
        if previous < quantity:
            raise InsufficientStockError(variant.sku, quantity, previous)

        variant.stock = previous - quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                sku=variant.sku,
                quantity=quantity,
                previous_stock=previous,
                new_stock=variant.stock,
            )
        )
        return variant.stock

    def increment_stock(self, sku, quantity: int) -> int:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self._require_variant(sku)
        previous = variant.stock or 0
        variant.stock = previous + quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockIncremented(
                product_id=str(self.id),
                sku=variant.sku,
                quantity=quantity,
                previous_stock=previous,
                new_stock=variant.stock,
            )
        )
        return variant.stock

    # -------------------------------------------------------------------
    # Re-pricing
    # -------------------------------------------------------------------
    def reprice(self, rates: RateSnapshot) -> int:
        """Recompute every variant against ``rates``. Returns how many changed."""
        changed = 0
        now = datetime.now(UTC)
        for variant in self.variants:
            breakdown = compute_variant_price(
                self.weight_inputs(), variant.karat, variant.stone_type, self.chain_addon(), rates
            )
            new_price = float(breakdown.price)
            if new_price == variant.price and breakdown.gross_weight == variant.gross_weight:
                continue

            previous = variant.price
            variant.price = new_price
            variant.gross_weight = breakdown.gross_weight
            changed += 1
            self.raise_(
                VariantRepriced(
                    product_id=str(self.id),
                    sku=variant.sku,
                    previous_price=previous,
                    new_price=new_price,
                    repriced_at=now,
                )
            )

        if changed:
            self.updated_at = now
        return changed
