"""GiftCard aggregate (CQRS): a redeemable monetary balance.

Status flow:
    PENDING → ACTIVE → REDEEMED (balance reaches 0)
    ACTIVE → EXPIRED (validity passed, via the expiry sweep or on use)
    PENDING/ACTIVE → CANCELLED

Each redemption is recorded so a failed checkout can credit its amount back.
"""

from datetime import datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, String

from commerce.discount.coupon import normalize_code
from commerce.discount.events import (
    GiftCardActivated,
    GiftCardExpired,
    GiftCardIssued,
    GiftCardRedeemed,
    GiftCardRestored,
)
from commerce.domain import commerce
from commerce.utils.clock import as_utc, utcnow


class GiftCardStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


_UNUSABLE_MESSAGES = {
    GiftCardStatus.PENDING: "Gift card has not been activated yet",
    GiftCardStatus.EXPIRED: "Gift card has expired",
    GiftCardStatus.CANCELLED: "Gift card has been cancelled",
    GiftCardStatus.REDEEMED: "Gift card has been fully redeemed",
}


@commerce.entity(part_of="GiftCard")
class GiftCardRedemption:
    user_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.01)
    order_ref = String(max_length=64)
    redeemed_at = DateTime(required=True)
    restored = Boolean(default=False)


@commerce.aggregate
class GiftCard:
    code = String(required=True, max_length=50)
    amount = Float(required=True, min_value=0.01)
    remaining_amount = Float(min_value=0.0)
    valid_upto = DateTime(required=True)
    status = String(choices=GiftCardStatus, default=GiftCardStatus.PENDING.value)
    redemptions = HasMany(GiftCardRedemption)
    created_at = DateTime()

    @invariant.post
    def balance_cannot_exceed_face_value(self):
        if self.remaining_amount is not None and self.remaining_amount > self.amount:
            raise ValidationError({"remaining_amount": ["Remaining balance cannot exceed the card amount"]})

    @classmethod
    def issue(cls, code, amount, valid_upto, activate=True):
        gift_card = cls(
            code=normalize_code(code),
            amount=amount,
            remaining_amount=amount,
            valid_upto=valid_upto,
            status=(GiftCardStatus.ACTIVE if activate else GiftCardStatus.PENDING).value,
            created_at=utcnow(),
        )
        gift_card.raise_(
            GiftCardIssued(
                gift_card_id=str(gift_card.id),
                code=gift_card.code,
                amount=amount,
                status=gift_card.status,
            )
        )
        return gift_card

    def activate(self):
        if self.status != GiftCardStatus.PENDING.value:
            raise ValidationError({"status": ["Only pending gift cards can be activated"]})

        self.status = GiftCardStatus.ACTIVE.value
        self.raise_(GiftCardActivated(gift_card_id=str(self.id), code=self.code))

    def check_redeemable(self, amount: float, now: datetime | None = None) -> float:
        """Confirm ``amount`` can be taken from this card and return it."""
        now = now or utcnow()
        status = GiftCardStatus(self.status)
        if status != GiftCardStatus.ACTIVE:
            raise ValidationError({"code": [_UNUSABLE_MESSAGES.get(status, "Gift card is not active")]})
        if as_utc(self.valid_upto) < now:
            raise ValidationError({"code": ["Gift card has expired"]})
        if amount <= 0:
            raise ValidationError({"amount": ["Redemption amount must be positive"]})
        if amount > (self.remaining_amount or 0.0):
            raise ValidationError(
                {"amount": [f"Insufficient gift card balance. Available: {self.remaining_amount}, Requested: {amount}"]}
            )
        return amount

    def redeem(self, user_id, amount: float, order_ref=None, now: datetime | None = None):
        now = now or utcnow()
        self.check_redeemable(amount, now)

        self.remaining_amount = round(self.remaining_amount - amount, 2)
        self.add_redemptions(
            GiftCardRedemption(
                user_id=str(user_id),
                amount=amount,
                order_ref=order_ref,
                redeemed_at=now,
            )
        )
        if self.remaining_amount == 0:
            self.status = GiftCardStatus.REDEEMED.value

        self.raise_(
            GiftCardRedeemed(
                gift_card_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                amount=amount,
                remaining_amount=self.remaining_amount,
                order_ref=order_ref,
                redeemed_at=now,
            )
        )

    def restore(self, amount: float, order_ref=None):
        """Credit back a redemption that a failed checkout rolled back."""
        redemption = next(
            (
                r
                for r in self.redemptions
                if not r.restored and r.amount == amount and (order_ref is None or r.order_ref == order_ref)
            ),
            None,
        )
        if redemption is None:
            raise ValidationError({"amount": [f"No redemption of {amount} to restore"]})

        redemption.restored = True
        self.remaining_amount = round((self.remaining_amount or 0.0) + amount, 2)
        if self.status == GiftCardStatus.REDEEMED.value:
            self.status = GiftCardStatus.ACTIVE.value

        self.raise_(
            GiftCardRestored(
                gift_card_id=str(self.id),
                code=self.code,
                amount=amount,
                remaining_amount=self.remaining_amount,
            )
        )

    def expire_if_due(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        if self.status != GiftCardStatus.ACTIVE.value or as_utc(self.valid_upto) >= now:
            return False

        self.status = GiftCardStatus.EXPIRED.value
        self.raise_(
            GiftCardExpired(
                gift_card_id=str(self.id),
                code=self.code,
                remaining_amount=self.remaining_amount or 0.0,
                expired_at=now,
            )
        )
        return True
