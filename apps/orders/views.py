from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.utils.throttle import BurstRateThrottle

from .coupons import CouponEvaluator
from .models import Order
from .serializers import (
    AdminOrderSerializer,
    AdminOrderUpdateSerializer,
    CancelOrderSerializer,
    CheckoutSerializer,
    CouponValidateSerializer,
    OrderCreatedSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
)
from .services import OrderNotFound, OrderService


class OrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Customer orders: checkout, history, detail, tracking, cancellation.
    """
    permission_classes = [IsAuthenticated]
    filterset_fields = ["order_status", "payment_status", "shipping_status"]

    def get_queryset(self):
        qs = Order.objects.filter(user=self.request.user)
        if self.action == "list":
            return qs.prefetch_related("items")
        return qs.prefetch_related("items", "timeline")

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderDetailSerializer

    def get_throttles(self):
        if self.action in ("create", "cancel"):
            return [BurstRateThrottle()]
        return super().get_throttles()

    def get_object(self):
        if "order_number" in self.kwargs:
            lookup = {"order_number": self.kwargs["order_number"].upper()}
        else:
            lookup = {"id": self.kwargs["pk"]}
        try:
            return self.get_queryset().get(**lookup)
        except (Order.DoesNotExist, ValidationError):
            raise OrderNotFound()

    def retrieve(self, request, *args, **kwargs):
        return Response({"success": True, "data": self.get_serializer(self.get_object()).data})

    def create(self, request):
        """
        Checkout. Optional X-Idempotency-Key guards against double submits.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        cache_key = None
        idempotency_key = request.headers.get("X-Idempotency-Key")
        if idempotency_key:
            cache_key = f"checkout_idempotency_{request.user.id}_{idempotency_key}"
            # add() is atomic: only the first request with this key gets in
            if not cache.add(cache_key, "processing", timeout=settings.CHECKOUT_IDEMPOTENCY_TTL):
                return Response(
                    {"success": False, "error": "Duplicate request detected", "code": "duplicate_request"},
                    status=status.HTTP_409_CONFLICT,
                )

        try:
            order = OrderService.create_order(user=request.user, **serializer.validated_data)
        except Exception:
            # Nothing was committed, so the same key may be retried
            if cache_key:
                cache.delete(cache_key)
            raise

        return Response(
            {
                "success": True,
                "message": "Order created successfully",
                "data": OrderCreatedSerializer(order).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.cancel_order(
            user=request.user,
            order_id=pk,
            reason=serializer.validated_data.get("reason") or None,
        )
        return Response(result)

    @action(detail=False, methods=["get"], url_path=r"track/(?P<order_number>[A-Za-z0-9-]+)")
    def track(self, request, order_number=None):
        return Response({"success": True, "data": self.get_serializer(self.get_object()).data})


class AdminOrderUpdateView(APIView):
    """
    Staff: PATCH order/payment/shipping status, tracking number, notes.
    """
    permission_classes = [IsAdminUser]

    def patch(self, request, order_id):
        serializer = AdminOrderUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_status(request.user, order_id, **serializer.validated_data)
        order = Order.objects.prefetch_related("items", "timeline").get(id=order.id)

        return Response({
            "success": True,
            "message": "Order updated successfully",
            "data": AdminOrderSerializer(order).data,
        })


class CouponValidateView(APIView):
    """
    Coupon preview for the cart page. Does not consume a use.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        discount = CouponEvaluator.evaluate(serializer.validated_data["code"], serializer.validated_data["subtotal"])
        return Response({
            "success": True,
            "data": {"code": discount.code, "discountAmount": discount.amount},
        })
