"""Discount expiry sweep: commands and handlers for lapsing stale instruments.

Designed to be triggered periodically by an external scheduler (cron,
K8s CronJob) via ``manage.py sweep-discounts`` or the maintenance endpoint.
Finds active gift cards and vouchers whose validity has passed and expires
each one with its own command, so one bad record does not stop the sweep.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from commerce.discount.giftcard import GiftCard, GiftCardStatus
from commerce.discount.voucher import Voucher, VoucherStatus
from commerce.domain import commerce
from commerce.utils.clock import as_utc, utcnow

logger = structlog.get_logger(__name__)


@commerce.command(part_of="GiftCard")
class ExpireGiftCard:
    gift_card_id = Identifier(required=True)
    as_of = DateTime()


@commerce.command(part_of="Voucher")
class ExpireVoucher:
    voucher_id = Identifier(required=True)
    as_of = DateTime()


@commerce.command(part_of="GiftCard")
class SweepExpiredDiscounts:
    """Expire active gift cards and vouchers past their validity."""

    as_of = DateTime()  # Optional: defaults to now


@commerce.command_handler(part_of=GiftCard)
class ExpireGiftCardHandler:
    @handle(ExpireGiftCard)
    def expire_gift_card(self, command):
        repo = current_domain.repository_for(GiftCard)
        gift_card = repo.get(command.gift_card_id)
        if gift_card.expire_if_due(as_utc(command.as_of) or utcnow()):
            repo.add(gift_card)
            return True
        return False

    @handle(SweepExpiredDiscounts)
    def sweep(self, command):
        as_of = as_utc(command.as_of) or utcnow()
        logger.info("Sweeping expired discounts", as_of=as_of.isoformat())

        expired = {"gift_cards": 0, "vouchers": 0}

        gift_cards = (
            current_domain.repository_for(GiftCard)._dao.query.filter(status=GiftCardStatus.ACTIVE.value).all().items
        )
        for gift_card in gift_cards:
            if as_utc(gift_card.valid_upto) >= as_of:
                continue
            try:
                if current_domain.process(
                    ExpireGiftCard(gift_card_id=str(gift_card.id), as_of=as_of), asynchronous=False
                ):
                    expired["gift_cards"] += 1
                    logger.info("Expired gift card", gift_card_id=str(gift_card.id), code=gift_card.code)
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to expire gift card", gift_card_id=str(gift_card.id), error=str(exc))

        vouchers = current_domain.repository_for(Voucher)._dao.query.filter(status=VoucherStatus.ACTIVE.value).all().items
        for voucher in vouchers:
            if as_utc(voucher.valid_upto) >= as_of:
                continue
            try:
                if current_domain.process(ExpireVoucher(voucher_id=str(voucher.id), as_of=as_of), asynchronous=False):
                    expired["vouchers"] += 1
                    logger.info("Expired voucher", voucher_id=str(voucher.id), code=voucher.code)
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to expire voucher", voucher_id=str(voucher.id), error=str(exc))

        logger.info("Discount expiry sweep complete", **expired)
        return expired


@commerce.command_handler(part_of=Voucher)
class ExpireVoucherHandler:
    @handle(ExpireVoucher)
    def expire_voucher(self, command):
        repo = current_domain.repository_for(Voucher)
        voucher = repo.get(command.voucher_id)
        if voucher.expire_if_due(as_utc(command.as_of) or utcnow()):
            repo.add(voucher)
            return True
        return False
