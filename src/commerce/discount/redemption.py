"""Discount redemption: commands and handlers.

Redeem commands consume a code for a customer at checkout; Restore commands
are their compensations when the checkout does not complete. Codes are
resolved case-insensitively; an unknown code raises DiscountNotFoundError.
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.discount.coupon import Coupon, normalize_code
from commerce.discount.giftcard import GiftCard
from commerce.discount.voucher import Voucher
from commerce.domain import commerce
from commerce.errors import DiscountNotFoundError


def find_by_code(aggregate_cls, code: str):
    matches = current_domain.repository_for(aggregate_cls)._dao.query.filter(code=normalize_code(code)).all().items
    if not matches:
        raise DiscountNotFoundError(aggregate_cls.__name__, code)
    return matches[0]


@commerce.command(part_of="Coupon")
class RedeemCoupon:
    code = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    order_ref = String(max_length=64)


@commerce.command(part_of="Coupon")
class RestoreCoupon:
    code = String(required=True, max_length=50)
    user_id = Identifier(required=True)


@commerce.command(part_of="Voucher")
class RedeemVoucher:
    code = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    order_ref = String(max_length=64)


@commerce.command(part_of="Voucher")
class RestoreVoucher:
    code = String(required=True, max_length=50)


@commerce.command(part_of="GiftCard")
class RedeemGiftCard:
    code = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.01)
    order_ref = String(max_length=64)


@commerce.command(part_of="GiftCard")
class RestoreGiftCard:
    code = String(required=True, max_length=50)
    amount = Float(required=True, min_value=0.01)
    order_ref = String(max_length=64)


@commerce.command_handler(part_of=Coupon)
class CouponRedemptionHandler:
    @handle(RedeemCoupon)
    def redeem(self, command):
        coupon = find_by_code(Coupon, command.code)
        coupon.redeem(command.user_id, order_ref=command.order_ref)
        current_domain.repository_for(Coupon).add(coupon)

    @handle(RestoreCoupon)
    def restore(self, command):
        coupon = find_by_code(Coupon, command.code)
        coupon.restore(command.user_id)
        current_domain.repository_for(Coupon).add(coupon)


@commerce.command_handler(part_of=Voucher)
class VoucherRedemptionHandler:
    @handle(RedeemVoucher)
    def redeem(self, command):
        voucher = find_by_code(Voucher, command.code)
        voucher.redeem(command.user_id, order_ref=command.order_ref)
        current_domain.repository_for(Voucher).add(voucher)

    @handle(RestoreVoucher)
    def restore(self, command):
        voucher = find_by_code(Voucher, command.code)
        voucher.restore()
        current_domain.repository_for(Voucher).add(voucher)


@commerce.command_handler(part_of=GiftCard)
class GiftCardRedemptionHandler:
    @handle(RedeemGiftCard)
    def redeem(self, command):
        gift_card = find_by_code(GiftCard, command.code)
        gift_card.redeem(command.user_id, command.amount, order_ref=command.order_ref)
        current_domain.repository_for(GiftCard).add(gift_card)
        return gift_card.remaining_amount

    @handle(RestoreGiftCard)
    def restore(self, command):
        gift_card = find_by_code(GiftCard, command.code)
        gift_card.restore(command.amount, order_ref=command.order_ref)
        current_domain.repository_for(GiftCard).add(gift_card)
