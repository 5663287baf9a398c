"""Tests for the pure variant pricing function and the rate snapshot."""

import pytest
from protean.exceptions import ValidationError

from commerce.pricing.rates import RateSnapshot, default_rate_snapshot
from commerce.pricing.variant_price import ChainAddon, StoneType, WeightInputs, compute_variant_price
from commerce.settings import CommerceSettings

RING = WeightInputs(net_weight=2.0, solitaire_weight=0.5)


class TestComputeVariantPrice:
    def test_18k_ring_price(self):
        breakdown = compute_variant_price(RING, 18, StoneType.REGULAR_DIAMOND, None, RateSnapshot())
        # gold 19760 + solitaire 30000 + making 2520 + certification 1200 = 53480, plus 3% tax
        assert breakdown.subtotal == 53480
        assert breakdown.price == 55084

    def test_gross_weight_adds_fifth_of_diamond_carats(self):
        breakdown = compute_variant_price(RING, 18, "regular_diamond", None, RateSnapshot())
        assert breakdown.gross_weight == 2.1

    def test_14k_is_cheaper_than_18k(self):
        rates = RateSnapshot()
        price_14 = compute_variant_price(RING, 14, "regular_diamond", None, rates).price
        price_18 = compute_variant_price(RING, 18, "regular_diamond", None, rates).price
        assert price_14 == 50532
        assert price_14 < price_18

    def test_large_solitaire_uses_higher_tier(self):
        rates = RateSnapshot()
        assert rates.solitaire_rate(2.99) == 60000
        assert rates.solitaire_rate(3.0) == 75000

        weights = WeightInputs(net_weight=0.0, solitaire_weight=3.0)
        breakdown = compute_variant_price(weights, 18, "regular_diamond", None, rates)
        assert breakdown.diamond_value == 3.0 * 75000

    def test_gemstone_stones_priced_at_gemstone_rate(self):
        weights = WeightInputs(net_weight=1.0, gemstone_solitaire_weight=2.0, gemstone_pointer_weight=1.0)
        regular = compute_variant_price(weights, 14, "regular_diamond", None, RateSnapshot())
        gemstone = compute_variant_price(weights, 14, "gemstone", None, RateSnapshot())
        assert gemstone.diamond_value - regular.diamond_value == 3.0 * 500

    def test_colored_diamond_uses_coloured_rate(self):
        weights = WeightInputs(net_weight=1.0, solitaire_weight=0.2, pointer_weight=0.1)
        regular = compute_variant_price(weights, 14, "regular_diamond", None, RateSnapshot())
        colored = compute_variant_price(weights, 14, "colored_diamond", None, RateSnapshot())
        assert colored.diamond_value - regular.diamond_value == pytest.approx(0.3 * 95000)

    def test_chain_addon_defaults_to_14k(self):
        breakdown = compute_variant_price(RING, 18, "regular_diamond", ChainAddon(), RateSnapshot())
        assert breakdown.chain_value == 2.5 * 7670

    def test_chain_addon_with_explicit_karat(self):
        breakdown = compute_variant_price(RING, 18, "regular_diamond", ChainAddon(karat=18), RateSnapshot())
        assert breakdown.chain_value == 2.5 * 9880

    def test_unknown_karat_rejected(self):
        with pytest.raises(ValidationError) as exc:
            compute_variant_price(RING, 22, "regular_diamond", None, RateSnapshot())
        assert "karat" in exc.value.messages

    def test_negative_weight_rejected(self):
        weights = WeightInputs(net_weight=-1.0)
        with pytest.raises(ValidationError):
            compute_variant_price(weights, 18, "regular_diamond", None, RateSnapshot())

    def test_same_inputs_same_price(self):
        rates = RateSnapshot()
        first = compute_variant_price(RING, 18, "regular_diamond", None, rates)
        second = compute_variant_price(RING, 18, "regular_diamond", None, rates)
        assert first == second


class TestRateSnapshot:
    def test_gold_rates_are_read_only(self):
        rates = RateSnapshot()
        with pytest.raises(TypeError):
            rates.gold_rates[18] = 1.0

    def test_with_gold_rates_returns_new_snapshot(self):
        rates = RateSnapshot()
        updated = rates.with_gold_rates({18: 10000})
        assert updated.gold_rate(18) == 10000
        assert rates.gold_rate(18) == 9880

    def test_with_gold_rates_can_add_karat(self):
        updated = RateSnapshot().with_gold_rates({22: 12000})
        assert updated.karats == (9, 14, 18, 22)

    def test_default_snapshot_uses_configured_rates(self):
        settings = CommerceSettings(gold_rates={9: 5000, 14: 7000, 18: 9000})
        assert default_rate_snapshot(settings).gold_rate(18) == 9000
