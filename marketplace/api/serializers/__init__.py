# Marketplace API Serializers

from .common_serializers import ListingSummarySerializer, MessageSerializer, UserSummarySerializer

# Import response serializers for API documentation
from .response_serializers import (
    ErrorResponseSerializer,
    OfferAcceptedResponseSerializer,
    OfferRejectedResponseSerializer,
    ResultEnvelopeSerializer,
)


__all__ = [
    # Shared model serializers
    "ListingSummarySerializer",
    "MessageSerializer",
    "UserSummarySerializer",
    # Response serializers for documentation
    "ErrorResponseSerializer",
    "OfferAcceptedResponseSerializer",
    "OfferRejectedResponseSerializer",
    "ResultEnvelopeSerializer",
]
