from django.db import models

from apps.catalog.models import Product, ProductVariant
from apps.utils.models import AppendOnlyModel


class InventoryMovement(AppendOnlyModel):
    """
    Immutable Ledger of all stock changes made by orders.
    One row per decrement/increment; quantity is signed.
    """
    class MovementType(models.TextChoices):
        SALE = "SALE", "Sale"
        RETURN = "RETURN", "Return (Cancellation)"

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='movements'
    )
    variant = models.ForeignKey(
        ProductVariant,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name='movements'
    )

    type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity = models.IntegerField(help_text="Delta value (+/-)")

    # Traceability
    reference = models.CharField(max_length=100, db_index=True, help_text="Order ID")
    reason = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'variant']),
        ]

    def __str__(self):
        return f"{self.type} {self.quantity:+d} ({self.reference})"
