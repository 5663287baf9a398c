"""Variant price computation.

Pure function of weight inputs, karat, stone type, an optional chain addon and
an explicit RateSnapshot. Identical inputs always give the identical price,
which lets the re-pricing job and price audits reproduce any stored figure.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from protean.exceptions import ValidationError

from commerce.pricing.rates import RateSnapshot


class StoneType(Enum):
    REGULAR_DIAMOND = "regular_diamond"
    GEMSTONE = "gemstone"
    COLORED_DIAMOND = "colored_diamond"


@dataclass(frozen=True)
class WeightInputs:
    """Carat and gram weights of one product design."""

    net_weight: float
    solitaire_weight: float = 0.0
    multi_diamond_weight: float = 0.0
    pointer_weight: float = 0.0
    gemstone_solitaire_weight: float = 0.0
    gemstone_pointer_weight: float = 0.0


@dataclass(frozen=True)
class ChainAddon:
    karat: int | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    price: int
    gross_weight: float
    gold_value: float
    diamond_value: float
    making_charges: float
    chain_value: float
    certification_fee: float
    subtotal: int
    tax_amount: float


def round_half_up(value: float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def _gemstone_value(weights: WeightInputs, stone_type: StoneType, rates: RateSnapshot) -> float:
    if stone_type == StoneType.COLORED_DIAMOND:
        return (weights.solitaire_weight + weights.pointer_weight) * rates.coloured_diamond_rate
    if stone_type == StoneType.GEMSTONE:
        return (weights.gemstone_solitaire_weight + weights.gemstone_pointer_weight) * rates.gemstone_rate
    return 0.0


def compute_variant_price(
    weights: WeightInputs,
    karat: int,
    stone_type: StoneType | str,
    chain_addon: ChainAddon | None,
    rates: RateSnapshot,
) -> PriceBreakdown:
    """Price one karat/stone-type combination of a design.

    Raises ValidationError for a karat the snapshot has no gold rate for,
    or for negative weights.
    """
    stone_type = StoneType(stone_type)

    gold_rate = rates.gold_rate(karat)
    if gold_rate is None:
        raise ValidationError({"karat": [f"No gold rate for {karat}k (known: {list(rates.karats)})"]})

    for name, value in vars(weights).items():
        if value is None or value < 0:
            raise ValidationError({name: ["Weight must be a non-negative number"]})

    diamond_weight = weights.solitaire_weight + weights.multi_diamond_weight
    gross_weight = weights.net_weight + diamond_weight * rates.diamond_weight_factor

    gold_value = weights.net_weight * gold_rate
    making_charges = gross_weight * rates.making_charge_per_gram

    solitaire_value = 0.0
    if weights.solitaire_weight > 0:
        solitaire_value = weights.solitaire_weight * rates.solitaire_rate(weights.solitaire_weight)

    diamond_value = (
        solitaire_value
        + weights.multi_diamond_weight * rates.multi_diamond_rate
        + weights.pointer_weight * rates.pointer_rate
        + _gemstone_value(weights, stone_type, rates)
    )

    chain_value = 0.0
    if chain_addon is not None:
        chain_karat = chain_addon.karat or rates.default_chain_karat
        chain_rate = rates.gold_rate(chain_karat)
        if chain_rate is None:
            raise ValidationError({"chain_karat": [f"No gold rate for {chain_karat}k"]})
        chain_value = rates.chain_weight * chain_rate

    subtotal = gold_value + diamond_value + making_charges + chain_value + rates.certification_fee
    total = subtotal * (1 + rates.tax_percent / 100)

    return PriceBreakdown(
        price=int(round_half_up(total)),
        gross_weight=float(round_half_up(gross_weight, 2)),
        gold_value=gold_value,
        diamond_value=diamond_value,
        making_charges=making_charges,
        chain_value=chain_value,
        certification_fee=rates.certification_fee,
        subtotal=int(round_half_up(subtotal)),
        tax_amount=total - subtotal,
    )
