from decimal import Decimal

from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel
from ..status import (
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    PaymentMethod,
    CUSTOMER_CANCELLABLE,
)

__all__ = ["Order", "OrderSequence"]


class Order(TimestampedModel):
    """
    Durable record of one checkout. Created once by OrderService and never
    physically deleted.
    """
    Status = OrderStatus
    PaymentStatus = PaymentStatus
    ShippingStatus = ShippingStatus
    PaymentMethod = PaymentMethod

    order_number = models.CharField(max_length=32, unique=True, editable=False)  # SOL-YYYYMMDD-NNNNN
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    address = models.ForeignKey("customers.Address", on_delete=models.PROTECT, related_name='orders')

    # Snapshot of Address (JSON) to prevent historical drift
    delivery_address = models.JSONField(default=dict)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    order_status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    shipping_status = models.CharField(max_length=20, choices=ShippingStatus.choices, default=ShippingStatus.PENDING)

    sender_number = models.CharField(max_length=20, blank=True, null=True, help_text="Wallet sender for manual payment proof")
    coupon_code = models.CharField(max_length=50, blank=True, null=True)
    customer_notes = models.TextField(blank=True, null=True)
    admin_notes = models.TextField(blank=True, null=True)
    tracking_number = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "-created_at"]),
        ]

    def __str__(self):
        return f"{self.order_number} [{self.order_status}]"

    @staticmethod
    def compute_total(subtotal, discount_amount, shipping_cost, tax_amount) -> Decimal:
        return subtotal - discount_amount + shipping_cost + tax_amount

    @property
    def can_cancel(self):
        return self.order_status in CUSTOMER_CANCELLABLE


class OrderSequence(models.Model):
    """
    Per-day order number counter. Only advanced by a single
    UPDATE ... SET last_value = last_value + 1.
    """
    day = models.DateField(primary_key=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_sequences"

    def __str__(self):
        return f"{self.day}: {self.last_value}"
