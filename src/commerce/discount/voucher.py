"""Voucher aggregate (CQRS): single-use fixed-amount discount."""

from datetime import datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, String

from commerce.discount.coupon import normalize_code
from commerce.discount.events import VoucherExpired, VoucherIssued, VoucherRedeemed, VoucherRestored
from commerce.domain import commerce
from commerce.utils.clock import as_utc, utcnow


class VoucherStatus(Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


@commerce.aggregate
class Voucher:
    code = String(required=True, max_length=50)
    name = String(max_length=255)
    amount = Float(required=True, min_value=0.01)
    minimum_value = Float(min_value=0.0, default=0.0)
    start_from = DateTime()
    valid_upto = DateTime(required=True)
    used = Boolean(default=False)
    used_by = Identifier()
    used_at = DateTime()
    status = String(choices=VoucherStatus, default=VoucherStatus.ACTIVE.value)
    created_at = DateTime()

    @invariant.post
    def start_must_precede_expiry(self):
        if self.start_from and self.valid_upto and as_utc(self.start_from) >= as_utc(self.valid_upto):
            raise ValidationError({"start_from": ["Start date must be before valid upto date"]})

    @classmethod
    def issue(cls, code, amount, valid_upto, name=None, minimum_value=0.0, start_from=None):
        voucher = cls(
            code=normalize_code(code),
            name=name,
            amount=amount,
            minimum_value=minimum_value or 0.0,
            start_from=start_from,
            valid_upto=valid_upto,
            status=VoucherStatus.ACTIVE.value,
            created_at=utcnow(),
        )
        voucher.raise_(
            VoucherIssued(
                voucher_id=str(voucher.id),
                code=voucher.code,
                amount=amount,
                valid_upto=valid_upto,
            )
        )
        return voucher

    def _check_usable(self, now: datetime):
        if self.used or self.status == VoucherStatus.USED.value:
            raise ValidationError({"code": ["Voucher has already been used"]})
        if self.start_from and as_utc(self.start_from) > now:
            raise ValidationError({"code": ["Voucher is not yet valid"]})
        if self.status == VoucherStatus.EXPIRED.value or as_utc(self.valid_upto) < now:
            raise ValidationError({"code": ["Voucher has expired"]})

    def discount_for(self, subtotal: float, now: datetime | None = None) -> float:
        now = now or utcnow()
        self._check_usable(now)

        if subtotal < (self.minimum_value or 0.0):
            raise ValidationError({"code": [f"Minimum purchase of {self.minimum_value} required"]})
        if self.amount > subtotal:
            raise ValidationError({"code": ["Voucher amount exceeds cart total"]})

        return self.amount

    def redeem(self, user_id, order_ref=None, now: datetime | None = None):
        now = now or utcnow()
        if self.used_by and str(self.used_by) == str(user_id):
            raise ValidationError({"code": ["You have already used this voucher"]})
        self._check_usable(now)

        self.used = True
        self.used_by = str(user_id)
        self.used_at = now
        self.status = VoucherStatus.USED.value

        self.raise_(
            VoucherRedeemed(
                voucher_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                order_ref=order_ref,
                redeemed_at=now,
            )
        )

    def restore(self):
        if not self.used:
            return

        self.used = False
        self.used_by = None
        self.used_at = None
        self.status = VoucherStatus.ACTIVE.value
        self.raise_(VoucherRestored(voucher_id=str(self.id), code=self.code))

    def expire_if_due(self, now: datetime | None = None) -> bool:
        """Mark an unused voucher past its validity as expired."""
        now = now or utcnow()
        if self.status != VoucherStatus.ACTIVE.value or as_utc(self.valid_upto) >= now:
            return False

        self.status = VoucherStatus.EXPIRED.value
        self.raise_(VoucherExpired(voucher_id=str(self.id), code=self.code, expired_at=now))
        return True
