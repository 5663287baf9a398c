"""Commerce bounded context: checkout and payment core of the jewelry store.

Holds the catalogue variants and their stock, shopping carts with stacked
discounts, the checkout that turns a cart into an immutable order, the order
lifecycle (event-sourced) and the payment lifecycle driven by gateway webhooks
or cash-on-delivery confirmation.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
