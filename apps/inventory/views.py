from rest_framework import views
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .models import InventoryMovement
from .serializers import InventoryMovementSerializer
from .services import InventoryLedger


class InventoryMovementListAPIView(views.APIView):
    """
    Ledger history for staff. Filter by ?reference=<order id> or ?product_id=.
    """
    permission_classes = [IsAdminUser]

    def get(self, request):
        qs = InventoryMovement.objects.select_related('product').all()
        reference = request.query_params.get('reference')
        if reference:
            qs = qs.filter(reference=reference)
        if product_id := request.query_params.get('product_id'):
            qs = qs.filter(product_id=product_id)

        qs = qs[:100]  # Limit for performance
        data = {"results": InventoryMovementSerializer(qs, many=True).data}
        if reference:
            data["net_quantity"] = InventoryLedger.net_quantity(reference)
        return Response(data)
