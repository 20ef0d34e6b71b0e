import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.utils.models import TimestampedModel


class Governorate(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=10, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Center(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    governorate = models.ForeignKey(Governorate, on_delete=models.CASCADE, related_name="centers")
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.governorate.code})"


class Village(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    center = models.ForeignKey(Center, on_delete=models.CASCADE, related_name="villages")
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class ShippingRateQuerySet(models.QuerySet):

    def effective(self, at=None):
        at = at or timezone.now()
        return self.filter(
            is_active=True,
            effective_from__lte=at,
        ).filter(
            Q(effective_to__isnull=True) | Q(effective_to__gte=at)
        )


class ShippingRate(TimestampedModel):
    """
    Cost rule scoped to exactly one level of the location hierarchy.
    """
    governorate = models.ForeignKey(
        Governorate, null=True, blank=True, on_delete=models.CASCADE, related_name="shipping_rates"
    )
    center = models.ForeignKey(
        Center, null=True, blank=True, on_delete=models.CASCADE, related_name="shipping_rates"
    )
    village = models.ForeignKey(
        Village, null=True, blank=True, on_delete=models.CASCADE, related_name="shipping_rates"
    )

    cost = models.DecimalField(max_digits=12, decimal_places=2)
    free_threshold = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    effective_from = models.DateTimeField(default=timezone.now)
    effective_to = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    objects = ShippingRateQuerySet.as_manager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(village__isnull=False, center__isnull=True, governorate__isnull=True)
                    | Q(village__isnull=True, center__isnull=False, governorate__isnull=True)
                    | Q(village__isnull=True, center__isnull=True, governorate__isnull=False)
                ),
                name="shipping_rate_single_scope",
            ),
            models.CheckConstraint(
                condition=Q(cost__gte=0),
                name="shipping_rate_cost_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active", "effective_from"]),
        ]

    def __str__(self):
        scope = self.village or self.center or self.governorate
        return f"{scope}: {self.cost}"
