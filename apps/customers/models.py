# apps/customers/models.py

from django.core.exceptions import ValidationError
from django.db import models
from django.conf import settings

from apps.utils.models import TimestampedModel


class Address(TimestampedModel):
    """
    Delivery address. Located in the governorate > center > village
    hierarchy used for shipping rates.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="addresses",
    )

    recipient_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20, blank=True)
    street = models.TextField()

    governorate = models.ForeignKey(
        "shipping.Governorate",
        on_delete=models.PROTECT,
        related_name="addresses",
    )
    center = models.ForeignKey(
        "shipping.Center",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="addresses",
    )
    village = models.ForeignKey(
        "shipping.Village",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="addresses",
    )

    is_default = models.BooleanField(default=False)
    # Soft delete: orders keep pointing at deactivated addresses
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-is_default", "-created_at"]
        indexes = [
            models.Index(fields=["user", "is_active"]),
        ]

    def __str__(self):
        return f"{self.recipient_name} - {self.street}"

    def location_errors(self) -> dict:
        """
        Center must sit in the governorate and village in the center,
        otherwise another region's shipping rate would apply.
        """
        errors = {}
        if self.center_id and self.center.governorate_id != self.governorate_id:
            errors["center"] = "Center does not belong to the selected governorate."
        if self.village_id:
            if not self.center_id:
                errors["village"] = "A village requires its center."
            elif self.village.center_id != self.center_id:
                errors["village"] = "Village does not belong to the selected center."
        return errors

    def clean(self):
        super().clean()
        errors = self.location_errors()
        if errors:
            raise ValidationError(errors)

    def location_path(self):
        from apps.shipping.services import LocationPath

        return LocationPath(
            governorate_id=self.governorate_id,
            center_id=self.center_id,
            village_id=self.village_id,
        )

    def as_dict(self):
        """
        Snapshot-safe representation for Orders
        """
        return {
            "id": str(self.id),
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "street": self.street,
            "governorate": self.governorate.name,
            "center": self.center.name if self.center_id else None,
            "village": self.village.name if self.village_id else None,
        }
