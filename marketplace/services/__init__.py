"""
Marketplace Service Layer

Business logic for the negotiation-to-fulfillment pipeline. Every public
operation returns a ServiceResult; callers map ``result.status`` to a
transport code and never inspect exceptions.

Services:
- NegotiationService: offer creation, acceptance, rejection and expiry
- FulfillmentService: direct purchase, payment, cancellation, sale review and expiry

Usage:
    from marketplace.services import NegotiationService

    result = NegotiationService().accept_offer(offer_id, request.user)
    if result.success:
        order = result.data["order"]
    else:
        errors = result.errors
"""

from .base import BaseService, ErrorKind, ServiceResult, get_or_none, service_err, service_ok  # noqa: I001
from marketplace.negotiation.domain.services.negotiation_service import NegotiationService
from marketplace.ordering.domain.services.fulfillment_service import FulfillmentService


__all__ = [
    "BaseService",
    "ErrorKind",
    "FulfillmentService",
    "NegotiationService",
    "ServiceResult",
    "get_or_none",
    "service_err",
    "service_ok",
]
