"""Catalogue re-pricing job: command and handler.

Triggered externally (cron or the maintenance endpoint) after gold rates
move. The new rates arrive as an explicit snapshot; each active product's
variants are recomputed against it and saved. Products that cannot be priced
against the snapshot are logged and skipped.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Text
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.domain import commerce
from commerce.pricing.rates import RateSnapshot, default_rate_snapshot

logger = structlog.get_logger(__name__)


def reprice_catalogue(rates: RateSnapshot) -> int:
    """Reprice every active product against ``rates``; return variants changed."""
    repo = current_domain.repository_for(Product)
    repriced = 0
    for product in repo.active_products():
        try:
            changed = product.reprice(rates)
        except ValidationError as exc:
            logger.warning(
                "Skipping product that cannot be repriced",
                product_id=str(product.id),
                product_code=product.product_code,
                error=str(exc),
            )
            continue

        if changed:
            repo.add(product)
            repriced += changed
            logger.info("Repriced product", product_id=str(product.id), variants_changed=changed)

    logger.info("Catalogue re-pricing complete", variants_repriced=repriced)
    return repriced


@commerce.command(part_of="Product")
class RepriceCatalogue:
    """Recompute variant prices; ``gold_rates`` is a JSON object of karat -> rate per gram."""

    gold_rates = Text()


@commerce.command_handler(part_of=Product)
class RepriceCatalogueHandler:
    @handle(RepriceCatalogue)
    def reprice(self, command):
        rates = default_rate_snapshot()
        if command.gold_rates:
            overrides = json.loads(command.gold_rates)
            rates = rates.with_gold_rates({int(k): float(v) for k, v in overrides.items()})

        logger.info("Repricing catalogue", gold_rates=dict(rates.gold_rates))
        return reprice_catalogue(rates)
