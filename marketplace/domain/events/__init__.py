from .base import DomainEvent
from .offer_events import OfferAcceptedEvent, OfferCreatedEvent, OfferExpiredEvent, OfferRejectedEvent
from .order_events import (
    OrderCancelledEvent,
    OrderPlacedEvent,
    PaymentConfirmedEvent,
    SaleApprovedEvent,
    SaleRejectedEvent,
)


__all__ = [
    "DomainEvent",
    "OfferAcceptedEvent",
    "OfferCreatedEvent",
    "OfferExpiredEvent",
    "OfferRejectedEvent",
    "OrderCancelledEvent",
    "OrderPlacedEvent",
    "PaymentConfirmedEvent",
    "SaleApprovedEvent",
    "SaleRejectedEvent",
]
