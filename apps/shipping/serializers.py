from decimal import Decimal

from rest_framework import serializers

from .models import Governorate, Center, Village


class GovernorateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Governorate
        fields = ["id", "name", "code"]


class CenterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Center
        fields = ["id", "name", "code", "governorate_id"]


class VillageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Village
        fields = ["id", "name", "code", "center_id"]


class ShippingQuoteSerializer(serializers.Serializer):
    governorateId = serializers.UUIDField(source="governorate_id")
    centerId = serializers.UUIDField(source="center_id", required=False, allow_null=True)
    villageId = serializers.UUIDField(source="village_id", required=False, allow_null=True)
    orderTotal = serializers.DecimalField(
        source="order_total", max_digits=12, decimal_places=2, min_value=Decimal("0.00")
    )
