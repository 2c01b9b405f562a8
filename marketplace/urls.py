from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api.views import prometheus_metrics
from .negotiation.api.views import OfferViewSet
from .ordering.api.views import AdminOrderViewSet, OrderViewSet

# Create the main router
router = DefaultRouter()
router.register(r"offers", OfferViewSet, basename="offer")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"admin/orders", AdminOrderViewSet, basename="admin-order")

app_name = "marketplace"

urlpatterns = [
    # Prometheus metrics endpoint
    path("metrics/", prometheus_metrics.marketplace_prometheus_metrics, name="marketplace-metrics"),
    # Main API routes
    path("", include(router.urls)),
]
