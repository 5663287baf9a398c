"""Discount facade: routes each applied slot to its kind's consumer.

At checkout every applied slot is consumed independently. A code that its
consumer no longer knows is skipped with a warning so the remaining kinds are
still consumed; any other failure (already used, expired) propagates.
"""

import structlog

from commerce.discount.consumers import CouponConsumer, GiftCardConsumer, VoucherConsumer
from commerce.discount.port import DiscountConsumer, DiscountKind, Redemption
from commerce.errors import DiscountNotFoundError, InternalInconsistencyError

logger = structlog.get_logger(__name__)


class DiscountFacade:
    def __init__(self, consumers: list[DiscountConsumer] | None = None):
        consumers = consumers or [CouponConsumer(), VoucherConsumer(), GiftCardConsumer()]
        self._consumers = {c.kind: c for c in consumers}

    def consumer_for(self, kind: DiscountKind | str) -> DiscountConsumer:
        return self._consumers[DiscountKind(kind)]

    def validate(self, kind: DiscountKind | str, code: str, amount: float) -> Redemption:
        return self.consumer_for(kind).validate_for_redemption(code, amount)

    def consume_applied(self, applied: list[Redemption], user_id: str, order_ref: str) -> list[Redemption]:
        """Consume every applied slot; return those actually consumed.

        When a slot fails, the slots consumed before it are restored and the
        failure is re-raised.
        """
        consumed = []
        for redemption in applied:
            consumer = self.consumer_for(redemption.kind)
            try:
                consumer.mark_consumed(redemption.code, user_id, amount=redemption.amount, order_ref=order_ref)
            except DiscountNotFoundError:
                logger.warning(
                    "Applied discount no longer exists, skipping",
                    kind=redemption.kind.value,
                    code=redemption.code,
                    order_ref=order_ref,
                )
                continue
            except Exception:
                self.restore_consumed(consumed, user_id, order_ref)
                raise
            consumed.append(redemption)
            logger.info(
                "Discount consumed",
                kind=redemption.kind.value,
                code=redemption.code,
                amount=redemption.amount,
                order_ref=order_ref,
            )
        return consumed

    def restore_consumed(self, consumed: list[Redemption], user_id: str, order_ref: str) -> None:
        """Compensate consume_applied; every failure is collected and surfaced."""
        failures = []
        for redemption in reversed(consumed):
            try:
                self.consumer_for(redemption.kind).restore(
                    redemption.code, user_id, amount=redemption.amount, order_ref=order_ref
                )
            except Exception as exc:
                failures.append({"kind": redemption.kind.value, "code": redemption.code, "error": str(exc)})

        if failures:
            logger.error("Discount restore failed; manual correction required", order_ref=order_ref, failures=failures)
            raise InternalInconsistencyError("Discounts could not be restored", order_ref=order_ref, failures=failures)
