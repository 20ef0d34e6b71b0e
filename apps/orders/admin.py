import json

from django.contrib import admin
from django.utils.html import format_html

from .models import CartItem, Coupon, Order, OrderCancellation, OrderItem, OrderTimeline


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'variant', 'quantity', 'unit_price', 'total_price', 'product_snapshot')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderTimelineInline(admin.TabularInline):
    model = OrderTimeline
    extra = 0
    readonly_fields = ('timestamp', 'status', 'description', 'created_by')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only in the admin. Status changes go through
    PATCH /api/v1/orders/admin/<id>/ so stock and timeline stay consistent.
    """
    list_display = (
        'order_number',
        'user',
        'order_status',
        'payment_status',
        'shipping_status',
        'payment_method',
        'total_amount',
        'created_at',
    )
    list_filter = ('order_status', 'payment_status', 'shipping_status', 'payment_method', 'created_at')
    search_fields = ('order_number', 'id', 'user__email', 'sender_number', 'tracking_number')

    inlines = [OrderItemInline, OrderTimelineInline]

    readonly_fields = (
        'id',
        'order_number',
        'user',
        'address',
        'formatted_delivery_address',
        'subtotal',
        'discount_amount',
        'shipping_cost',
        'tax_amount',
        'total_amount',
        'coupon_code',
        'payment_method',
        'payment_status',
        'order_status',
        'shipping_status',
        'sender_number',
        'customer_notes',
        'admin_notes',
        'tracking_number',
        'created_at',
        'updated_at',
    )

    fieldsets = (
        ('Order Details', {
            'fields': ('order_number', 'id', 'user', 'order_status', 'customer_notes', 'admin_notes')
        }),
        ('Financials', {
            'fields': ('subtotal', 'discount_amount', 'coupon_code', 'shipping_cost', 'tax_amount', 'total_amount')
        }),
        ('Payment', {
            'fields': ('payment_method', 'payment_status', 'sender_number')
        }),
        ('Delivery', {
            'fields': ('address', 'formatted_delivery_address', 'shipping_status', 'tracking_number')
        }),
        ('System Data', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def formatted_delivery_address(self, obj):
        """Delivery address snapshot as formatted HTML"""
        if not obj.delivery_address:
            return "-"
        return format_html("<pre>{}</pre>", json.dumps(obj.delivery_address, indent=2, ensure_ascii=False))

    formatted_delivery_address.short_description = "Delivery Address Snapshot"


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ('user', 'product', 'variant', 'quantity', 'added_at')
    search_fields = ('user__email', 'product__name')
    raw_id_fields = ('user', 'product', 'variant')


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ('code', 'type', 'value', 'max_discount', 'valid_to', 'is_active', 'usage_count', 'usage_limit')
    list_filter = ('is_active', 'type')
    search_fields = ('code',)
    readonly_fields = ('usage_count',)
    fieldsets = (
        ('Coupon Details', {
            'fields': ('code', 'is_active')
        }),
        ('Value', {
            'fields': ('type', 'value', 'max_discount', 'min_order_value')
        }),
        ('Validity', {
            'fields': ('valid_from', 'valid_to', 'usage_limit')
        }),
        ('Stats', {
            'fields': ('usage_count',),
            'classes': ('collapse',)
        })
    )


@admin.register(OrderCancellation)
class OrderCancellationAdmin(admin.ModelAdmin):
    list_display = ('order', 'cancelled_by', 'cancelled_by_user', 'created_at')
    list_filter = ('cancelled_by',)
    search_fields = ('order__order_number', 'reason')
    readonly_fields = ('order', 'reason', 'cancelled_by', 'cancelled_by_user', 'created_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
