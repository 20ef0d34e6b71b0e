from rest_framework import generics
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Governorate, Center, Village
from .serializers import (
    GovernorateSerializer,
    CenterSerializer,
    VillageSerializer,
    ShippingQuoteSerializer,
)
from .services import LocationPath, ShippingRateResolver


class GovernorateListView(generics.ListAPIView):
    queryset = Governorate.objects.filter(is_active=True)
    serializer_class = GovernorateSerializer
    permission_classes = [AllowAny]
    pagination_class = None


class CenterListView(generics.ListAPIView):
    serializer_class = CenterSerializer
    permission_classes = [AllowAny]
    pagination_class = None

    def get_queryset(self):
        return Center.objects.filter(governorate_id=self.kwargs["governorate_id"], is_active=True)


class VillageListView(generics.ListAPIView):
    serializer_class = VillageSerializer
    permission_classes = [AllowAny]
    pagination_class = None

    def get_queryset(self):
        return Village.objects.filter(center_id=self.kwargs["center_id"], is_active=True)


class ShippingQuoteView(APIView):
    """
    Shipping preview before checkout. Same resolver as checkout, no writes.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = ShippingQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        d = serializer.validated_data

        location = LocationPath(
            governorate_id=d["governorate_id"],
            center_id=d.get("center_id"),
            village_id=d.get("village_id"),
        )
        quote = ShippingRateResolver.quote(location, d["order_total"])
        return Response({
            "success": True,
            "data": {
                "cost": quote["cost"],
                "isFree": quote["is_free"],
                "threshold": quote["threshold"],
            },
        })
