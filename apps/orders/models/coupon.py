from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.utils.models import TimestampedModel

__all__ = ["Coupon"]


class Coupon(TimestampedModel):
    class Type(models.TextChoices):
        PERCENTAGE = "PERCENTAGE", "Percentage"
        FIXED_AMOUNT = "FIXED_AMOUNT", "Fixed Amount"

    code = models.CharField(max_length=50, unique=True, help_text="Stored uppercase")
    type = models.CharField(max_length=20, choices=Type.choices)
    value = models.DecimalField(max_digits=12, decimal_places=2)

    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    min_order_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    valid_from = models.DateTimeField(default=timezone.now)
    valid_to = models.DateTimeField(null=True, blank=True)

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(usage_count__lte=models.F("usage_limit")),
                name="coupon_usage_within_limit",
            ),
            models.CheckConstraint(
                condition=Q(value__gte=0),
                name="coupon_value_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.type} {self.value})"

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def has_headroom(self) -> bool:
        return self.usage_limit is None or self.usage_count < self.usage_limit

    def discount_for(self, subtotal: Decimal) -> Decimal:
        if self.type == self.Type.PERCENTAGE:
            discount = subtotal * self.value / Decimal("100")
            if self.max_discount is not None:
                discount = min(discount, self.max_discount)
        else:
            discount = self.value
        # Never more than the goods themselves
        return min(discount, subtotal)
