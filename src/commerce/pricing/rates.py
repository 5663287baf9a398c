"""Immutable pricing rate snapshot.

Every pricing call receives a RateSnapshot explicitly. Rate updates build a
new snapshot with ``with_gold_rates`` instead of mutating a shared table, so
concurrent requests never observe a half-applied update.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from commerce.settings import CommerceSettings, get_settings

DEFAULT_GOLD_RATES = {9: 5750.0, 14: 7670.0, 18: 9880.0}


@dataclass(frozen=True)
class SolitaireTier:
    """Per-carat rate applied when the solitaire weight is at least ``min_carat``."""

    min_carat: float
    rate_per_carat: float


@dataclass(frozen=True)
class RateSnapshot:
    gold_rates: Mapping[int, float] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_GOLD_RATES)))
    making_charge_per_gram: float = 1200.0
    certification_fee: float = 1200.0
    tax_percent: float = 3.0
    multi_diamond_rate: float = 30000.0
    pointer_rate: float = 48000.0
    coloured_diamond_rate: float = 95000.0
    gemstone_rate: float = 500.0
    chain_weight: float = 2.5
    default_chain_karat: int = 14
    diamond_weight_factor: float = 0.2
    solitaire_tiers: tuple[SolitaireTier, ...] = (
        SolitaireTier(min_carat=3.0, rate_per_carat=75000.0),
        SolitaireTier(min_carat=0.0, rate_per_carat=60000.0),
    )

    def __post_init__(self):
        if not isinstance(self.gold_rates, MappingProxyType):
            object.__setattr__(self, "gold_rates", MappingProxyType(dict(self.gold_rates)))
        # Highest threshold first so the first match wins
        ordered = tuple(sorted(self.solitaire_tiers, key=lambda t: t.min_carat, reverse=True))
        object.__setattr__(self, "solitaire_tiers", ordered)

    @property
    def karats(self) -> tuple[int, ...]:
        return tuple(sorted(self.gold_rates))

    def gold_rate(self, karat: int) -> float | None:
        return self.gold_rates.get(int(karat))

    def solitaire_rate(self, carat: float) -> float:
        for tier in self.solitaire_tiers:
            if carat >= tier.min_carat:
                return tier.rate_per_carat
        return 0.0

    def with_gold_rates(self, gold_rates: Mapping[int, float]) -> "RateSnapshot":
        """Return a new snapshot with the given karat rates merged in."""
        merged = {**self.gold_rates, **{int(k): float(v) for k, v in gold_rates.items()}}
        return replace(self, gold_rates=MappingProxyType(merged))


def default_rate_snapshot(settings: CommerceSettings | None = None) -> RateSnapshot:
    """Build the snapshot for the currently configured gold rates."""
    settings = settings or get_settings()
    return RateSnapshot().with_gold_rates(settings.gold_rates)
