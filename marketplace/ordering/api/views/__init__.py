from .admin_order_views import AdminOrderViewSet
from .order_views import OrderViewSet


__all__ = ["AdminOrderViewSet", "OrderViewSet"]
