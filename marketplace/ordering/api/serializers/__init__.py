from .order_serializers import (
    CreateOrderRequestSerializer,
    OrderSerializer,
    PaymentProofRequestSerializer,
    ReasonRequestSerializer,
    ShippingAddressSerializer,
)


__all__ = [
    "CreateOrderRequestSerializer",
    "OrderSerializer",
    "PaymentProofRequestSerializer",
    "ReasonRequestSerializer",
    "ShippingAddressSerializer",
]
