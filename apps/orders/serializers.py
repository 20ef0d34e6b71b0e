from decimal import Decimal

from rest_framework import serializers

from .models import Order, OrderItem, OrderTimeline
from .status import OrderStatus, PaymentMethod, PaymentStatus, ShippingStatus


class CheckoutSerializer(serializers.Serializer):
    addressId = serializers.UUIDField(source="address_id")
    paymentMethod = serializers.ChoiceField(source="payment_method", choices=PaymentMethod.choices)
    senderNumber = serializers.CharField(source="sender_number", max_length=20, required=False, allow_blank=True, allow_null=True)
    couponCode = serializers.CharField(source="coupon_code", max_length=50, required=False, allow_blank=True, allow_null=True)
    customerNotes = serializers.CharField(source="customer_notes", required=False, allow_blank=True, allow_null=True)


class OrderCreatedSerializer(serializers.ModelSerializer):
    orderNumber = serializers.CharField(source="order_number")
    totalAmount = serializers.DecimalField(source="total_amount", max_digits=12, decimal_places=2)
    paymentMethod = serializers.CharField(source="payment_method")
    paymentStatus = serializers.CharField(source="payment_status")
    orderStatus = serializers.CharField(source="order_status")

    class Meta:
        model = Order
        fields = ["id", "orderNumber", "totalAmount", "paymentMethod", "paymentStatus", "orderStatus"]
        read_only_fields = fields


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class AdminOrderUpdateSerializer(serializers.Serializer):
    orderStatus = serializers.ChoiceField(source="order_status", choices=OrderStatus.choices, required=False)
    paymentStatus = serializers.ChoiceField(source="payment_status", choices=PaymentStatus.choices, required=False)
    shippingStatus = serializers.ChoiceField(source="shipping_status", choices=ShippingStatus.choices, required=False)
    trackingNumber = serializers.CharField(source="tracking_number", max_length=100, required=False, allow_blank=True)
    adminNotes = serializers.CharField(source="admin_notes", required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.00"))


class OrderItemSerializer(serializers.ModelSerializer):
    productId = serializers.UUIDField(source="product_id", read_only=True)
    variantId = serializers.UUIDField(source="variant_id", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2, read_only=True)
    totalPrice = serializers.DecimalField(source="total_price", max_digits=12, decimal_places=2, read_only=True)
    productSnapshot = serializers.JSONField(source="product_snapshot", read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "productId", "variantId", "quantity", "unitPrice", "totalPrice", "productSnapshot"]


class OrderTimelineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTimeline
        fields = ["status", "description", "timestamp"]


class OrderListSerializer(serializers.ModelSerializer):
    orderNumber = serializers.CharField(source="order_number")
    totalAmount = serializers.DecimalField(source="total_amount", max_digits=12, decimal_places=2)
    orderStatus = serializers.CharField(source="order_status")
    paymentStatus = serializers.CharField(source="payment_status")
    shippingStatus = serializers.CharField(source="shipping_status")
    createdAt = serializers.DateTimeField(source="created_at")
    itemCount = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id", "orderNumber", "totalAmount", "orderStatus",
            "paymentStatus", "shippingStatus", "createdAt", "itemCount",
        ]
        read_only_fields = fields

    def get_itemCount(self, obj):
        return sum(item.quantity for item in obj.items.all())


class OrderDetailSerializer(OrderListSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    timeline = OrderTimelineSerializer(many=True, read_only=True)
    deliveryAddress = serializers.JSONField(source="delivery_address")
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discountAmount = serializers.DecimalField(source="discount_amount", max_digits=12, decimal_places=2)
    shippingCost = serializers.DecimalField(source="shipping_cost", max_digits=12, decimal_places=2)
    taxAmount = serializers.DecimalField(source="tax_amount", max_digits=12, decimal_places=2)
    paymentMethod = serializers.CharField(source="payment_method")
    couponCode = serializers.CharField(source="coupon_code", allow_null=True)
    trackingNumber = serializers.CharField(source="tracking_number", allow_null=True)
    customerNotes = serializers.CharField(source="customer_notes", allow_null=True)
    canCancel = serializers.BooleanField(source="can_cancel")

    class Meta(OrderListSerializer.Meta):
        fields = OrderListSerializer.Meta.fields + [
            "subtotal", "discountAmount", "shippingCost", "taxAmount",
            "paymentMethod", "couponCode", "trackingNumber", "customerNotes",
            "canCancel", "deliveryAddress", "items", "timeline",
        ]
        read_only_fields = fields


class AdminOrderSerializer(OrderDetailSerializer):
    adminNotes = serializers.CharField(source="admin_notes", allow_null=True)
    senderNumber = serializers.CharField(source="sender_number", allow_null=True)

    class Meta(OrderDetailSerializer.Meta):
        fields = OrderDetailSerializer.Meta.fields + ["adminNotes", "senderNumber"]
        read_only_fields = fields
