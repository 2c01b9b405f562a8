from marketplace.conversations.domain.models import Message
from marketplace.listings.domain.models import Listing
from marketplace.negotiation.domain.models import Offer
from marketplace.ordering.domain.models import Order


__all__ = [
    "Listing",
    "Message",
    "Offer",
    "Order",
]
