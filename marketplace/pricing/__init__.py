from .calculator import (
    commission,
    delivery_window,
    format_amount,
    order_total,
    payment_deadline,
    round_to_unit,
    shipping_cost,
    tax,
)

__all__ = [
    "commission",
    "delivery_window",
    "format_amount",
    "order_total",
    "payment_deadline",
    "round_to_unit",
    "shipping_cost",
    "tax",
]
