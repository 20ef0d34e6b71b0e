import uuid

from django.conf import settings
from django.db import models

from apps.catalog.models import Product, ProductVariant

__all__ = ["CartItem"]


class CartItem(models.Model):
    """
    One cart line of a signed-in customer (product [+ variant] x quantity).
    Prices are NOT stored here: checkout always reprices from the catalog.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    product = models.ForeignKey(
        Product,
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    variant = models.ForeignKey(
        ProductVariant,
        null=True,
        blank=True,
        related_name="cart_items",
        on_delete=models.CASCADE,
    )

    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "cart_items"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "product", "variant"],
                condition=models.Q(variant__isnull=False),
                name="uniq_cart_line_per_user",
            ),
            # NULL variants are distinct in a plain unique index
            models.UniqueConstraint(
                fields=["user", "product"],
                condition=models.Q(variant__isnull=True),
                name="uniq_cart_line_without_variant",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="cart_quantity_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["user"]),
        ]

    def __str__(self):
        return f"{self.user_id} -> {self.product_id} x {self.quantity}"
