# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Brand, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active")
    search_fields = ("name",)
    list_filter = ("is_active",)


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    # Stock moves only through the inventory ledger
    readonly_fields = ("stock_quantity",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "brand", "base_price", "stock_quantity", "is_active")
    search_fields = ("name",)
    list_filter = ("category", "brand", "is_active")
    list_editable = ("is_active",)
    readonly_fields = ("stock_quantity", "created_at", "updated_at")
    inlines = [ProductVariantInline]
