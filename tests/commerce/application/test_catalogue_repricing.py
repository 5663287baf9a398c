"""Tests for catalogue management commands and the re-pricing job."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.catalogue import get_catalogue
from commerce.catalogue.management import AddVariant, RegisterProduct, RestockVariant
from commerce.catalogue.repricing import RepriceCatalogue
from commerce.checkout.orchestrator import CheckoutOrchestrator, CheckoutRequest
from commerce.order.lifecycle import OrderLifecycle
from commerce.settings import CommerceSettings, set_settings


def process(command):
    return current_domain.process(command, asynchronous=False)


def _price(sku):
    return get_catalogue().get_variant(sku).price


class TestCatalogueCommands:
    def test_duplicate_product_code(self, ring):
        with pytest.raises(ValidationError):
            process(RegisterProduct(name="Copy", product_code="RNG-001", net_weight=1.0))

    def test_sku_unique_across_products(self, ring):
        other = process(RegisterProduct(name="Band", product_code="BND-001", net_weight=3.0))
        with pytest.raises(ValidationError):
            process(AddVariant(product_id=other, karat=18, stone_type="regular_diamond", sku="RNG-001-18K"))

    def test_restock(self, ring):
        assert process(RestockVariant(product_id=ring, sku="RNG-001-14K", quantity=3)) == 5
        assert get_catalogue().get_variant("RNG-001-14K").stock == 5


class TestRepricing:
    def test_reprice_with_new_rate(self, ring):
        repriced = process(RepriceCatalogue(gold_rates=json.dumps({"18": 10000})))

        assert repriced == 1
        assert _price("RNG-001-18K") == 55332.0
        assert _price("RNG-001-14K") == 50532.0

    def test_reprice_with_configured_rates(self, ring):
        set_settings(CommerceSettings(gold_rates={9: 5750.0, 14: 7800.0, 18: 9880.0}))
        assert process(RepriceCatalogue()) == 1
        assert _price("RNG-001-18K") == 55084.0

    def test_placed_order_keeps_price_at_purchase(self, ring, add_to_cart, address):
        add_to_cart(ring)
        order_id = CheckoutOrchestrator().checkout(CheckoutRequest(user_id="user-001", shipping_address=address)).order_id

        process(RepriceCatalogue(gold_rates=json.dumps({"18": 12000})))

        assert OrderLifecycle().get(order_id).items[0].price_at_purchase == 55084.0
        assert _price("RNG-001-18K") > 55084.0
