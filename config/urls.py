from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

# Example: If settings.ADMIN_URL is "secret-admin", this becomes "secret-admin/"
admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    # --- Auth (token issue only; accounts live elsewhere) ---
    path('api/v1/auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('api/v1/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),

    # --- APIs ---
    path('api/v1/orders/', include('apps.orders.urls')),
    path('api/v1/shipping/', include('apps.shipping.urls')),
    path('api/v1/inventory/', include('apps.inventory.urls')),
    path('api/v1/utils/', include('apps.utils.urls')),

    # --- Docs ---
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
