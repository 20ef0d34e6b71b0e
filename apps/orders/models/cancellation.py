import uuid

from django.conf import settings
from django.db import models

from .order import Order

__all__ = ["OrderCancellation"]


class OrderCancellation(models.Model):
    """
    Order cancellation ka canonical record.
    - Reason
    - Who cancelled it (customer / admin)
    """
    class CancelledBy(models.TextChoices):
        CUSTOMER = "CUSTOMER", "Customer"
        ADMIN = "ADMIN", "Admin"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField(
        Order,
        related_name="cancellation",
        on_delete=models.PROTECT,
    )

    reason = models.TextField(blank=True)
    cancelled_by = models.CharField(
        max_length=20, choices=CancelledBy.choices, default=CancelledBy.CUSTOMER
    )
    cancelled_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="orders_cancelled",
        on_delete=models.SET_NULL,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_cancellations"
        indexes = [
            models.Index(fields=["cancelled_by", "created_at"]),
        ]

    def __str__(self):
        return f"Cancellation for {self.order_id} ({self.cancelled_by})"
