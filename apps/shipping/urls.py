from django.urls import path

from .views import GovernorateListView, CenterListView, VillageListView, ShippingQuoteView

urlpatterns = [
    path("governorates/", GovernorateListView.as_view(), name="shipping-governorates"),
    path("governorates/<uuid:governorate_id>/centers/", CenterListView.as_view(), name="shipping-centers"),
    path("centers/<uuid:center_id>/villages/", VillageListView.as_view(), name="shipping-villages"),
    path("quote/", ShippingQuoteView.as_view(), name="shipping-quote"),
]
