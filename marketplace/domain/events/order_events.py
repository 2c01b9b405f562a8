from dataclasses import dataclass
from typing import Optional

from .base import DomainEvent


def _order_payload(order, **extra) -> dict:
    payload = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "buyer_id": str(order.buyer_id),
        "listing_id": str(order.listing_id),
        "status": order.status,
        "payment_status": order.payment_status,
        "total_price": str(order.total_price),
    }
    payload.update(extra)
    return payload


@dataclass
class OrderPlacedEvent(DomainEvent):
    """Event: Order created, either by direct purchase or by offer acceptance."""

    def __init__(self, order, source: str):
        super().__init__(event_type="order.placed", payload=_order_payload(order, source=source))


@dataclass
class PaymentConfirmedEvent(DomainEvent):
    """Event: Buyer payment confirmed by an admin."""

    def __init__(self, order):
        super().__init__(event_type="order.payment_confirmed", payload=_order_payload(order))


@dataclass
class SaleApprovedEvent(DomainEvent):
    """Event: Admin approved the sale, listing sold and order completed."""

    def __init__(self, order, admin_id):
        super().__init__(event_type="order.sale_approved", payload=_order_payload(order, admin_id=str(admin_id)))


@dataclass
class SaleRejectedEvent(DomainEvent):
    """Event: Admin rejected the sale, payment refunded and listing released."""

    def __init__(self, order, admin_id, reason: Optional[str] = None):
        super().__init__(
            event_type="order.sale_rejected",
            payload=_order_payload(order, admin_id=str(admin_id), reason=reason or ""),
        )


@dataclass
class OrderCancelledEvent(DomainEvent):
    """Event: Order cancelled by its buyer, a competing accepted offer, or the expiry sweep."""

    def __init__(self, order, reason: str):
        super().__init__(event_type="order.cancelled", payload=_order_payload(order, reason=reason))
