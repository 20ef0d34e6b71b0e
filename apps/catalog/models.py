# apps/catalog/models.py
import uuid
from decimal import Decimal

from django.db import models
from django.utils.text import slugify

from apps.utils.models import TimestampedModel


class Category(models.Model):
    """
    Product category (e.g. Sneakers, Boots)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    slug = models.SlugField(unique=True, blank=True, db_index=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.name)
            slug_candidate = base_slug
            counter = 1

            while Category.objects.filter(slug=slug_candidate).exclude(pk=self.pk).exists():
                slug_candidate = f"{base_slug}-{counter}"
                counter += 1

            self.slug = slug_candidate
        super().save(*args, **kwargs)


class Brand(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Product(TimestampedModel):
    """
    Sellable product. Stock lives here unless the cart line names a variant.

    NOTE: catalog CRUD is handled elsewhere; inside this service stock is
    only mutated through apps.inventory.services.InventoryLedger.
    """
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    images = models.JSONField(default=list, blank=True, help_text="List of image URLs")

    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='products',
    )
    brand = models.ForeignKey(
        Brand,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='products',
    )

    base_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    stock_quantity = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active", "category"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='product_stock_non_negative'
            ),
        ]

    def __str__(self):
        return self.name

    def unit_price(self, variant=None) -> Decimal:
        delta = variant.price_delta if variant is not None else Decimal("0.00")
        return self.base_price + delta

    def snapshot(self, variant=None) -> dict:
        """
        Purchase-time copy stored on OrderItem. Must never be re-derived
        for an existing order.
        """
        return {
            "name": self.name,
            "description": self.description,
            "images": list(self.images or []),
            "brand": self.brand.name if self.brand_id else None,
            "category": self.category.name if self.category_id else None,
            "variant": variant.attributes() if variant is not None else None,
        }


class ProductVariant(TimestampedModel):
    """
    Specific SKU of a product (color/size/material) with its own stock.
    """
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="variants")
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=20, blank=True)
    material = models.CharField(max_length=100, blank=True)

    price_delta = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    stock_quantity = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='variant_stock_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.product.name} [{self.color}/{self.size}]"

    def attributes(self) -> dict:
        return {"color": self.color, "size": self.size, "material": self.material}
