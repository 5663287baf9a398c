"""Tests for Product variants and the stock guards on the aggregate."""

import pytest
from protean.exceptions import ValidationError

from commerce.catalogue.events import StockDecremented, VariantRepriced
from commerce.catalogue.product import Product
from commerce.errors import InsufficientStockError
from commerce.pricing.rates import RateSnapshot
from commerce.pricing.variant_price import WeightInputs


def _product(**overrides):
    kwargs = dict(
        name="Solitaire Ring",
        product_code="RNG-001",
        weights=WeightInputs(net_weight=2.0, solitaire_weight=0.5),
    )
    kwargs.update(overrides)
    return Product.register(**kwargs)


def _product_with_variant(stock=3):
    product = _product()
    product.add_variant(karat=18, stone_type="regular_diamond", sku="rng-001-18k", rates=RateSnapshot(), stock=stock)
    return product


class TestVariants:
    def test_variant_priced_on_add(self):
        product = _product_with_variant()
        variant = product.variant_for("RNG-001-18K")
        assert variant.price == 55084.0
        assert variant.gross_weight == 2.1

    def test_sku_normalized(self):
        product = _product_with_variant()
        assert product.variant_for(" rng-001-18k ") is not None

    def test_duplicate_sku_rejected(self):
        product = _product_with_variant()
        with pytest.raises(ValidationError):
            product.add_variant(karat=14, stone_type="regular_diamond", sku="RNG-001-18K", rates=RateSnapshot())

    def test_unknown_karat_rejected(self):
        product = _product()
        with pytest.raises(ValidationError):
            product.add_variant(karat=24, stone_type="regular_diamond", sku="RNG-001-24K", rates=RateSnapshot())

    def test_pendant_with_chain_prices_chain(self):
        plain = _product()
        with_chain = _product(product_code="PND-001", is_pendant_with_chain=True, chain_karat=18)
        plain.add_variant(karat=18, stone_type="regular_diamond", sku="A-18K", rates=RateSnapshot())
        with_chain.add_variant(karat=18, stone_type="regular_diamond", sku="B-18K", rates=RateSnapshot())
        assert with_chain.variant_for("B-18K").price > plain.variant_for("A-18K").price

    def test_availability_toggle(self):
        product = _product_with_variant()
        product.set_availability("RNG-001-18K", False)
        assert product.variant_for("RNG-001-18K").is_available is False


class TestStock:
    def test_decrement_within_stock(self):
        product = _product_with_variant(stock=3)
        assert product.decrement_stock("RNG-001-18K", 2) == 1

    def test_decrement_to_zero(self):
        product = _product_with_variant(stock=3)
        assert product.decrement_stock("RNG-001-18K", 3) == 0

    def test_decrement_beyond_stock_raises(self):
        product = _product_with_variant(stock=2)
        with pytest.raises(InsufficientStockError) as exc:
            product.decrement_stock("RNG-001-18K", 3)
        assert exc.value.requested == 3
        assert exc.value.available == 2
        assert product.variant_for("RNG-001-18K").stock == 2

    def test_decrement_raises_event(self):
        product = _product_with_variant(stock=3)
        product.decrement_stock("RNG-001-18K", 1)
        event = product._events[-1]
        assert isinstance(event, StockDecremented)
        assert event.previous_stock == 3
        assert event.new_stock == 2

    def test_non_positive_quantity_rejected(self):
        product = _product_with_variant()
        with pytest.raises(ValidationError):
            product.decrement_stock("RNG-001-18K", 0)
        with pytest.raises(ValidationError):
            product.increment_stock("RNG-001-18K", -1)

    def test_increment(self):
        product = _product_with_variant(stock=1)
        assert product.increment_stock("RNG-001-18K", 4) == 5

    def test_unknown_sku_rejected(self):
        product = _product_with_variant()
        with pytest.raises(ValidationError):
            product.decrement_stock("NOPE", 1)


class TestReprice:
    def test_reprice_with_new_gold_rate(self):
        product = _product_with_variant()
        changed = product.reprice(RateSnapshot().with_gold_rates({18: 10000}))
        assert changed == 1
        # 240 more gold value, plus 3% tax
        assert product.variant_for("RNG-001-18K").price == 55332.0
        assert isinstance(product._events[-1], VariantRepriced)

    def test_reprice_with_same_rates_changes_nothing(self):
        product = _product_with_variant()
        assert product.reprice(RateSnapshot()) == 0
