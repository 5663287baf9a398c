"""Repository-backed discount consumers, one per discount kind."""

from protean.utils.globals import current_domain

from commerce.discount.coupon import Coupon
from commerce.discount.giftcard import GiftCard
from commerce.discount.port import DiscountConsumer, DiscountKind, Redemption
from commerce.discount.redemption import (
    RedeemCoupon,
    RedeemGiftCard,
    RedeemVoucher,
    RestoreCoupon,
    RestoreGiftCard,
    RestoreVoucher,
    find_by_code,
)
from commerce.discount.voucher import Voucher


class CouponConsumer(DiscountConsumer):
    kind = DiscountKind.COUPON

    def validate_for_redemption(self, code, amount):
        coupon = find_by_code(Coupon, code)
        return Redemption(
            kind=self.kind,
            code=coupon.code,
            reference_id=str(coupon.id),
            amount=coupon.discount_for(amount),
        )

    def mark_consumed(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(RedeemCoupon(code=code, user_id=user_id, order_ref=order_ref), asynchronous=False)

    def restore(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(RestoreCoupon(code=code, user_id=user_id), asynchronous=False)


class VoucherConsumer(DiscountConsumer):
    kind = DiscountKind.VOUCHER

    def validate_for_redemption(self, code, amount):
        voucher = find_by_code(Voucher, code)
        return Redemption(
            kind=self.kind,
            code=voucher.code,
            reference_id=str(voucher.id),
            amount=voucher.discount_for(amount),
        )

    def mark_consumed(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(RedeemVoucher(code=code, user_id=user_id, order_ref=order_ref), asynchronous=False)

    def restore(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(RestoreVoucher(code=code), asynchronous=False)


class GiftCardConsumer(DiscountConsumer):
    """``amount`` is the balance the customer wants to redeem, not a subtotal."""

    kind = DiscountKind.GIFT_CARD

    def validate_for_redemption(self, code, amount):
        gift_card = find_by_code(GiftCard, code)
        return Redemption(
            kind=self.kind,
            code=gift_card.code,
            reference_id=str(gift_card.id),
            amount=gift_card.check_redeemable(amount),
        )

    def mark_consumed(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(
            RedeemGiftCard(code=code, user_id=user_id, amount=amount, order_ref=order_ref),
            asynchronous=False,
        )

    def restore(self, code, user_id, amount=None, order_ref=None):
        current_domain.process(RestoreGiftCard(code=code, amount=amount, order_ref=order_ref), asynchronous=False)
