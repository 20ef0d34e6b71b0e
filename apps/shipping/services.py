import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils import timezone

from apps.utils.utils import money

from .models import ShippingRate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationPath:
    governorate_id: object
    center_id: Optional[object] = None
    village_id: Optional[object] = None


class ShippingRateResolver:
    """
    Resolves shipping cost from the governorate > center > village rate
    table. Read-only: safe to call for quotes before checkout.
    """

    # Most specific scope first
    SCOPES = (
        ("village", "village_id"),
        ("center", "center_id"),
        ("governorate", "governorate_id"),
    )

    @staticmethod
    def global_free_threshold() -> Decimal:
        return money(getattr(settings, "SHIPPING_FREE_THRESHOLD", Decimal("500.00")))

    @staticmethod
    def default_cost() -> Decimal:
        return money(getattr(settings, "DEFAULT_SHIPPING_COST", Decimal("60.00")))

    @classmethod
    def find_rate(cls, location: LocationPath, now=None) -> Optional[ShippingRate]:
        now = now or timezone.now()
        effective = ShippingRate.objects.effective(now)

        for field, attr in cls.SCOPES:
            scope_id = getattr(location, attr)
            if not scope_id:
                continue
            # Several rates may be active at once: newest window wins
            rate = (
                effective
                .filter(**{f"{field}_id": scope_id})
                .order_by("-effective_from", "-created_at", "-id")
                .first()
            )
            if rate is not None:
                return rate
        return None

    @classmethod
    def resolve(cls, location: LocationPath, net_order_value, now=None) -> Decimal:
        net_order_value = money(net_order_value)

        if net_order_value >= cls.global_free_threshold():
            return money(0)

        rate = cls.find_rate(location, now=now)
        if rate is None:
            logger.info(
                "No shipping rate for governorate=%s center=%s village=%s, using default",
                location.governorate_id,
                location.center_id,
                location.village_id,
            )
            return cls.default_cost()

        if rate.free_threshold is not None and net_order_value >= rate.free_threshold:
            return money(0)

        return money(rate.cost)

    @classmethod
    def quote(cls, location: LocationPath, net_order_value, now=None) -> dict:
        """
        Breakdown for the pre-checkout preview.
        """
        cost = cls.resolve(location, net_order_value, now=now)
        rate = cls.find_rate(location, now=now)
        threshold = cls.global_free_threshold()
        if rate is not None and rate.free_threshold is not None:
            threshold = min(threshold, money(rate.free_threshold))
        return {
            "cost": cost,
            "is_free": cost == 0,
            "threshold": threshold,
        }
