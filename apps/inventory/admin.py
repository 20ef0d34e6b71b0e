# apps/inventory/admin.py
from django.contrib import admin
from .models import InventoryMovement


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'type', 'product', 'variant', 'quantity', 'reference')
    list_filter = ('type', 'created_at')
    search_fields = ('reference', 'product__name')

    def has_add_permission(self, request):
        return False  # Logs are immutable/system-generated

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
