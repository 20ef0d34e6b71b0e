from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import AdminOrderUpdateView, CouponValidateView, OrderViewSet

router = SimpleRouter()
router.register(r'', OrderViewSet, basename='orders')

urlpatterns = [
    path('admin/<uuid:order_id>/', AdminOrderUpdateView.as_view(), name='admin-order-update'),
    path('coupons/validate/', CouponValidateView.as_view(), name='coupon-validate'),
    path('', include(router.urls)),
]
