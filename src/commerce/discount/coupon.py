"""Coupon aggregate (CQRS): rule-based discount code.

A coupon takes either a percentage (optionally capped) or a flat amount off
the pre-discount subtotal. Each customer may redeem a given coupon once, and
an optional usage limit caps redemptions across all customers.
"""

import json
from datetime import datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from commerce.discount.events import CouponIssued, CouponRedeemed, CouponRestored
from commerce.domain import commerce
from commerce.utils.clock import as_utc, utcnow


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@commerce.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    value = Float(required=True, min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    minimum_subtotal = Float(min_value=0.0, default=0.0)
    valid_from = DateTime()
    valid_until = DateTime()
    usage_limit = Integer(min_value=1)
    used_count = Integer(min_value=0, default=0)
    used_by = Text()  # JSON array of user ids
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.value or 0) > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def issue(
        cls,
        code,
        discount_type,
        value,
        max_discount_amount=None,
        minimum_subtotal=0.0,
        valid_from=None,
        valid_until=None,
        usage_limit=None,
    ):
        coupon = cls(
            code=normalize_code(code),
            discount_type=DiscountType(discount_type).value,
            value=value,
            max_discount_amount=max_discount_amount,
            minimum_subtotal=minimum_subtotal or 0.0,
            valid_from=valid_from,
            valid_until=valid_until,
            usage_limit=usage_limit,
            used_count=0,
            used_by=json.dumps([]),
            created_at=utcnow(),
        )
        coupon.raise_(
            CouponIssued(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                value=value,
            )
        )
        return coupon

    def _users(self) -> list[str]:
        return json.loads(self.used_by) if self.used_by else []

    def _check_usable(self, now: datetime):
        if not self.is_active:
            raise ValidationError({"code": ["Coupon is not active"]})
        if self.valid_from and as_utc(self.valid_from) > now:
            raise ValidationError({"code": ["Coupon is not yet valid"]})
        if self.valid_until and as_utc(self.valid_until) < now:
            raise ValidationError({"code": ["Coupon has expired"]})
        if self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit:
            raise ValidationError({"code": ["Coupon usage limit reached"]})

    def discount_for(self, subtotal: float, now: datetime | None = None) -> float:
        """Amount this coupon takes off ``subtotal``; raises if it does not apply."""
        now = now or utcnow()
        self._check_usable(now)

        if subtotal < (self.minimum_subtotal or 0.0):
            raise ValidationError({"code": [f"Minimum purchase of {self.minimum_subtotal} required"]})

        if self.discount_type == DiscountType.PERCENTAGE.value:
            amount = subtotal * self.value / 100
            if self.max_discount_amount:
                amount = min(amount, self.max_discount_amount)
        else:
            amount = self.value

        return round(min(amount, subtotal), 2)

    def redeem(self, user_id, order_ref=None, now: datetime | None = None):
        now = now or utcnow()
        self._check_usable(now)

        users = self._users()
        if str(user_id) in users:
            raise ValidationError({"code": ["You have already used this coupon"]})

        users.append(str(user_id))
        self.used_by = json.dumps(users)
        self.used_count = (self.used_count or 0) + 1

        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                order_ref=order_ref,
                redeemed_at=now,
            )
        )

    def restore(self, user_id):
        users = self._users()
        if str(user_id) not in users:
            return

        users.remove(str(user_id))
        self.used_by = json.dumps(users)
        self.used_count = max(0, (self.used_count or 0) - 1)

        self.raise_(CouponRestored(coupon_id=str(self.id), code=self.code, user_id=str(user_id)))
