from django.urls import path, include
from rest_framework.routers import SimpleRouter

from apps.pricing.api.v1.views import PriceViewSet, PricingAdminViewSet

router = SimpleRouter()
router.register(r'prices', PriceViewSet, basename='prices')
router.register(r'admin', PricingAdminViewSet, basename='pricing-admin')

urlpatterns = [
    path('', include(router.urls)),
]
