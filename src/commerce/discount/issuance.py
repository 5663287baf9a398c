"""Discount issuance: commands and handlers.

Minimal administration so that codes exist to be redeemed: issue a coupon,
a voucher or a gift card, and activate a pending gift card.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.discount.coupon import Coupon, normalize_code
from commerce.discount.giftcard import GiftCard
from commerce.discount.voucher import Voucher
from commerce.domain import commerce


def _ensure_unique(aggregate_cls, code, label):
    existing = current_domain.repository_for(aggregate_cls)._dao.query.filter(code=normalize_code(code)).all().items
    if existing:
        raise ValidationError({"code": [f"{label} code already exists"]})


@commerce.command(part_of="Coupon")
class IssueCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    value = Float(required=True, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    minimum_subtotal = Float(min_value=0.0, default=0.0)
    valid_from = DateTime()
    valid_until = DateTime()
    usage_limit = Integer(min_value=1)


@commerce.command(part_of="Voucher")
class IssueVoucher:
    code = String(required=True, max_length=50)
    name = String(max_length=255)
    amount = Float(required=True, min_value=0.01)
    minimum_value = Float(min_value=0.0, default=0.0)
    start_from = DateTime()
    valid_upto = DateTime(required=True)


@commerce.command(part_of="GiftCard")
class IssueGiftCard:
    code = String(required=True, max_length=50)
    amount = Float(required=True, min_value=0.01)
    valid_upto = DateTime(required=True)
    activate = Boolean(default=True)


@commerce.command(part_of="GiftCard")
class ActivateGiftCard:
    gift_card_id = Identifier(required=True)


@commerce.command_handler(part_of=Coupon)
class IssueCouponHandler:
    @handle(IssueCoupon)
    def issue_coupon(self, command):
        _ensure_unique(Coupon, command.code, "Coupon")
        coupon = Coupon.issue(
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            max_discount_amount=command.max_discount_amount,
            minimum_subtotal=command.minimum_subtotal,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            usage_limit=command.usage_limit,
        )
        current_domain.repository_for(Coupon).add(coupon)
        return str(coupon.id)


@commerce.command_handler(part_of=Voucher)
class IssueVoucherHandler:
    @handle(IssueVoucher)
    def issue_voucher(self, command):
        _ensure_unique(Voucher, command.code, "Voucher")
        if command.minimum_value and command.amount > command.minimum_value:
            raise ValidationError({"amount": ["Voucher amount should be less than minimum purchase value"]})

        voucher = Voucher.issue(
            code=command.code,
            name=command.name,
            amount=command.amount,
            minimum_value=command.minimum_value,
            start_from=command.start_from,
            valid_upto=command.valid_upto,
        )
        current_domain.repository_for(Voucher).add(voucher)
        return str(voucher.id)


@commerce.command_handler(part_of=GiftCard)
class ManageGiftCardHandler:
    @handle(IssueGiftCard)
    def issue_gift_card(self, command):
        _ensure_unique(GiftCard, command.code, "Gift card")
        gift_card = GiftCard.issue(
            code=command.code,
            amount=command.amount,
            valid_upto=command.valid_upto,
            activate=command.activate if command.activate is not None else True,
        )
        current_domain.repository_for(GiftCard).add(gift_card)
        return str(gift_card.id)

    @handle(ActivateGiftCard)
    def activate_gift_card(self, command):
        repo = current_domain.repository_for(GiftCard)
        gift_card = repo.get(command.gift_card_id)
        gift_card.activate()
        repo.add(gift_card)
