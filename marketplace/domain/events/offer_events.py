from dataclasses import dataclass

from .base import DomainEvent


def _offer_payload(offer, **extra) -> dict:
    payload = {
        "offer_id": str(offer.id),
        "listing_id": str(offer.listing_id),
        "proposer_id": str(offer.proposer_id),
        "counterparty_id": str(offer.counterparty_id),
        "amount": str(offer.amount),
        "status": offer.status,
    }
    payload.update(extra)
    return payload


@dataclass
class OfferCreatedEvent(DomainEvent):
    def __init__(self, offer):
        super().__init__(event_type="offer.created", payload=_offer_payload(offer))


@dataclass
class OfferAcceptedEvent(DomainEvent):
    def __init__(self, offer, order):
        super().__init__(event_type="offer.accepted", payload=_offer_payload(offer, order_id=str(order.id)))


@dataclass
class OfferRejectedEvent(DomainEvent):
    """``cascade`` is True when the offer lost to a competing accepted offer."""

    def __init__(self, offer, cascade: bool = False):
        super().__init__(event_type="offer.rejected", payload=_offer_payload(offer, cascade=cascade))


@dataclass
class OfferExpiredEvent(DomainEvent):
    def __init__(self, offer):
        super().__init__(event_type="offer.expired", payload=_offer_payload(offer))
