from django.db import models

from apps.catalog.models import Product, ProductVariant
from .order import Order

__all__ = ["OrderItem"]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    variant = models.ForeignKey(
        ProductVariant, null=True, blank=True, on_delete=models.PROTECT, related_name='order_items'
    )

    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    # Snapshot (Critical for audit): what the customer saw at purchase time
    product_snapshot = models.JSONField()

    def __str__(self):
        return f"{self.quantity}x {self.product_snapshot.get('name', self.product_id)}"

    def save(self, *args, **kwargs):
        if not self._state.adding and self.pk:
            stored = OrderItem.objects.filter(pk=self.pk).values_list("product_snapshot", flat=True).first()
            if stored is not None and stored != self.product_snapshot:
                raise ValueError("OrderItem.product_snapshot is immutable once written.")
        super().save(*args, **kwargs)

    def as_stock_line(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "product_name": self.product_snapshot.get("name"),
        }
