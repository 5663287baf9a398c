"""Domain events for the Coupon, Voucher and GiftCard aggregates."""

from protean.fields import DateTime, Float, Identifier, String

from commerce.domain import commerce


@commerce.event(part_of="Coupon")
class CouponIssued:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    value = Float(required=True)


@commerce.event(part_of="Coupon")
class CouponRedeemed:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    order_ref = String()
    redeemed_at = DateTime(required=True)


@commerce.event(part_of="Coupon")
class CouponRestored:
    """A redemption was rolled back by a failed checkout."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)


@commerce.event(part_of="Voucher")
class VoucherIssued:
    __version__ = 1

    voucher_id = Identifier(required=True)
    code = String(required=True)
    amount = Float(required=True)
    valid_upto = DateTime(required=True)


@commerce.event(part_of="Voucher")
class VoucherRedeemed:
    __version__ = 1

    voucher_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    order_ref = String()
    redeemed_at = DateTime(required=True)


@commerce.event(part_of="Voucher")
class VoucherRestored:
    __version__ = 1

    voucher_id = Identifier(required=True)
    code = String(required=True)


@commerce.event(part_of="Voucher")
class VoucherExpired:
    __version__ = 1

    voucher_id = Identifier(required=True)
    code = String(required=True)
    expired_at = DateTime(required=True)


@commerce.event(part_of="GiftCard")
class GiftCardIssued:
    __version__ = 1

    gift_card_id = Identifier(required=True)
    code = String(required=True)
    amount = Float(required=True)
    status = String(required=True)


@commerce.event(part_of="GiftCard")
class GiftCardActivated:
    __version__ = 1

    gift_card_id = Identifier(required=True)
    code = String(required=True)


@commerce.event(part_of="GiftCard")
class GiftCardRedeemed:
    __version__ = 1

    gift_card_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    remaining_amount = Float(required=True)
    order_ref = String()
    redeemed_at = DateTime(required=True)


@commerce.event(part_of="GiftCard")
class GiftCardRestored:
    __version__ = 1

    gift_card_id = Identifier(required=True)
    code = String(required=True)
    amount = Float(required=True)
    remaining_amount = Float(required=True)


@commerce.event(part_of="GiftCard")
class GiftCardExpired:
    __version__ = 1

    gift_card_id = Identifier(required=True)
    code = String(required=True)
    remaining_amount = Float(required=True)
    expired_at = DateTime(required=True)
