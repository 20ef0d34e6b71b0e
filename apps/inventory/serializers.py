from rest_framework import serializers
from .models import InventoryMovement


class InventoryMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = InventoryMovement
        fields = [
            'id', 'created_at', 'type',
            'product_id', 'product_name', 'variant_id',
            'quantity', 'reference', 'reason',
        ]
