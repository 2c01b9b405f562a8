"""
Response Serializers for Marketplace API Documentation

These serializers define the structure of API responses for OpenAPI schema generation.
They are NOT used for data validation, only for documentation in Swagger/ReDoc.
"""

from rest_framework import serializers

from marketplace.services.base import ErrorKind

# ===== Common Response Serializers =====


class ResultEnvelopeSerializer(serializers.Serializer):
    """Envelope shared by every marketplace response"""

    success = serializers.BooleanField(help_text="Whether the operation succeeded")
    data = serializers.JSONField(help_text="Operation payload, null on failure", allow_null=True)
    errors = serializers.ListField(child=serializers.CharField(), help_text="Human-readable error messages")
    status = serializers.ChoiceField(choices=list(ErrorKind.ALL), help_text="Outcome kind")


class ErrorResponseSerializer(ResultEnvelopeSerializer):
    """Failure envelope (success=false, data=null)"""

    meta = serializers.DictField(required=False, help_text="Failure context, e.g. the conflicting existing offer")


# ===== Negotiation Response Serializers =====


class OfferAcceptedResponseSerializer(serializers.Serializer):
    """Payload of a successful offer acceptance"""

    accepted_offer = serializers.DictField(help_text="The accepted offer (see OfferSerializer)")
    response_message = serializers.DictField(help_text="Acceptance message sent to the proposer")
    order = serializers.DictField(help_text="The order created for the proposer (see OrderSerializer)")


class OfferRejectedResponseSerializer(serializers.Serializer):
    """Payload of a successful offer rejection"""

    rejected_offer = serializers.DictField(help_text="The rejected offer")
    response_message = serializers.DictField(help_text="Rejection message sent to the proposer")
