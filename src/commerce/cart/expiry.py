"""Idle cart expiry: command and handler for soft-deleting stale carts.

Triggered externally (``manage.py expire-carts`` or the maintenance
endpoint). Active carts whose ``expires_at`` has passed are marked expired;
the next access by the same owner starts a fresh cart.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.domain import commerce
from commerce.utils.clock import as_utc, utcnow

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class ExpireIdleCarts:
    as_of = DateTime()  # Optional: defaults to now


@commerce.command_handler(part_of=Cart)
class ExpireIdleCartsHandler:
    @handle(ExpireIdleCarts)
    def expire_idle_carts(self, command):
        as_of = as_utc(command.as_of) or utcnow()
        repo = current_domain.repository_for(Cart)

        expired_count = 0
        for cart in repo.active_carts():
            if not cart.is_expired(as_of):
                continue
            try:
                cart.expire(as_of)
            except ValidationError as exc:
                logger.warning("Failed to expire cart", cart_id=str(cart.id), error=str(exc))
                continue
            repo.add(cart)
            expired_count += 1

        logger.info("Idle cart expiry complete", expired_count=expired_count)
        return expired_count
