"""Catalogue management: commands and handler.

Enough catalogue administration to stock the store: register a design,
add priced variants, restock and toggle availability.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.domain import commerce
from commerce.pricing.rates import default_rate_snapshot
from commerce.pricing.variant_price import WeightInputs


@commerce.command(part_of="Product")
class RegisterProduct:
    name: String(required=True, max_length=255)
    product_code: String(required=True, max_length=64)
    image_url: String(max_length=500)
    net_weight: Float(required=True, min_value=0.0)
    solitaire_weight: Float(min_value=0.0, default=0.0)
    multi_diamond_weight: Float(min_value=0.0, default=0.0)
    pointer_weight: Float(min_value=0.0, default=0.0)
    gemstone_solitaire_weight: Float(min_value=0.0, default=0.0)
    gemstone_pointer_weight: Float(min_value=0.0, default=0.0)
    is_pendant_with_chain: Boolean(default=False)
    chain_karat: Integer()


@commerce.command(part_of="Product")
class AddVariant:
    product_id: Identifier(required=True)
    karat: Integer(required=True)
    stone_type: String(required=True, max_length=30)
    sku: String(required=True, max_length=64)
    stock: Integer(min_value=0, default=0)
    is_available: Boolean(default=True)


@commerce.command(part_of="Product")
class RestockVariant:
    product_id: Identifier(required=True)
    sku: String(required=True, max_length=64)
    quantity: Integer(required=True, min_value=1)


@commerce.command(part_of="Product")
class SetVariantAvailability:
    product_id: Identifier(required=True)
    sku: String(required=True, max_length=64)
    is_available: Boolean(required=True)


@commerce.command_handler(part_of=Product)
class ManageCatalogueHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_code(command.product_code) is not None:
            raise ValidationError({"product_code": [f"Product {command.product_code} already exists"]})

        product = Product.register(
            name=command.name,
            product_code=command.product_code,
            image_url=command.image_url,
            weights=WeightInputs(
                net_weight=command.net_weight,
                solitaire_weight=command.solitaire_weight or 0.0,
                multi_diamond_weight=command.multi_diamond_weight or 0.0,
                pointer_weight=command.pointer_weight or 0.0,
                gemstone_solitaire_weight=command.gemstone_solitaire_weight or 0.0,
                gemstone_pointer_weight=command.gemstone_pointer_weight or 0.0,
            ),
            is_pendant_with_chain=bool(command.is_pendant_with_chain),
            chain_karat=command.chain_karat,
        )
        repo.add(product)
        return str(product.id)

    @handle(AddVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(Product)

        owner = repo.find_by_sku(command.sku)
        if owner is not None and str(owner.id) != str(command.product_id):
            raise ValidationError({"sku": [f"SKU {command.sku} is already used by another product"]})

        product = repo.get(command.product_id)
        variant = product.add_variant(
            karat=command.karat,
            stone_type=command.stone_type,
            sku=command.sku,
            rates=default_rate_snapshot(),
            stock=command.stock or 0,
            is_available=command.is_available if command.is_available is not None else True,
        )
        repo.add(product)
        return variant.sku

    @handle(RestockVariant)
    def restock_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        new_stock = product.increment_stock(command.sku, command.quantity)
        repo.add(product)
        return new_stock

    @handle(SetVariantAvailability)
    def set_availability(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.set_availability(command.sku, command.is_available)
        repo.add(product)
