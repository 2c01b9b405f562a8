from .order import Order, generate_order_number


__all__ = [
    "Order",
    "generate_order_number",
]
