import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.utils.exceptions import Conflict, ValidationFailed
from apps.utils.utils import money

from .models import Coupon

logger = logging.getLogger(__name__)


class InvalidOrExpiredCoupon(ValidationFailed):
    default_code = "invalid_coupon"

    def __init__(self, message="Invalid or expired coupon code"):
        super().__init__(message)


class MinOrderNotMet(ValidationFailed):
    default_code = "min_order_not_met"

    def __init__(self, min_order_value):
        self.min_order_value = min_order_value
        super().__init__(f"Minimum order value of {min_order_value} EGP required for this coupon")


class CouponExhausted(ValidationFailed):
    default_code = "coupon_exhausted"

    def __init__(self, message="Coupon usage limit exceeded"):
        super().__init__(message)


class CouponConflict(CouponExhausted, Conflict):
    status_code = Conflict.status_code
    default_code = "coupon_conflict"

    def __init__(self):
        super().__init__("Coupon was just used up by another order. Please retry.")


@dataclass(frozen=True)
class Discount:
    code: str
    amount: Decimal
    coupon_id: Optional[object] = None


class CouponEvaluator:

    @staticmethod
    def _lookup(code, now):
        code = (code or "").strip().upper()
        if not code:
            raise InvalidOrExpiredCoupon()

        coupon = (
            Coupon.objects
            .filter(code=code, is_active=True, valid_from__lte=now)
            .filter(Q(valid_to__isnull=True) | Q(valid_to__gte=now))
            .first()
        )
        if coupon is None:
            raise InvalidOrExpiredCoupon()
        return coupon

    @classmethod
    def _check(cls, code, subtotal, now):
        subtotal = money(subtotal)
        coupon = cls._lookup(code, now)

        if coupon.min_order_value is not None and subtotal < coupon.min_order_value:
            raise MinOrderNotMet(coupon.min_order_value)
        if not coupon.has_headroom:
            raise CouponExhausted()

        return coupon, Discount(code=coupon.code, amount=money(coupon.discount_for(subtotal)), coupon_id=coupon.id)

    @classmethod
    def evaluate(cls, code, subtotal, now=None) -> Discount:
        """
        Validation only. Nothing is written; used for the checkout preview.
        """
        _, discount = cls._check(code, subtotal, now or timezone.now())
        return discount

    @classmethod
    @transaction.atomic
    def redeem(cls, code, subtotal, now=None) -> Discount:
        """
        Validates and consumes one use of the coupon. Must run inside the
        order transaction so a later failure gives the use back.
        """
        coupon, discount = cls._check(code, subtotal, now or timezone.now())

        updated = (
            Coupon.objects
            .filter(pk=coupon.pk)
            .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
            .update(usage_count=F("usage_count") + 1, updated_at=timezone.now())
        )
        if not updated:
            # _check saw headroom, so someone else took the last use
            logger.warning("Coupon race lost for %s", coupon.code, extra={"coupon_code": coupon.code})
            raise CouponConflict()

        return discount
