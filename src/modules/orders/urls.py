"""Order URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.orders.views import FreightViewSet, OrderViewSet, TransportViewSet

router = DefaultRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")
router.register("transports", TransportViewSet, basename="transport")
router.register("freight", FreightViewSet, basename="freight")

urlpatterns = router.urls
