from rest_framework import serializers

from marketplace.api.serializers import ListingSummarySerializer, UserSummarySerializer
from marketplace.negotiation.domain.models.offer import Offer


class OfferSerializer(serializers.ModelSerializer):
    listing = ListingSummarySerializer(read_only=True)
    proposer = UserSummarySerializer(read_only=True)
    counterparty = UserSummarySerializer(read_only=True)
    formatted_amount = serializers.CharField(read_only=True)

    class Meta:
        model = Offer
        fields = [
            "id",
            "message",
            "listing",
            "proposer",
            "counterparty",
            "amount",
            "formatted_amount",
            "status",
            "note",
            "expires_at",
            "responded_at",
            "created_at",
        ]
        read_only_fields = fields


class CreateOfferRequestSerializer(serializers.Serializer):
    """Request body for making an offer. Domain rules are checked by NegotiationService."""

    listing_id = serializers.UUIDField(help_text="Listing the offer is for")
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, help_text="Proposed price")
    counterparty_id = serializers.IntegerField(
        required=False, help_text="Recipient of the offer (defaults to the listing owner)"
    )
    note = serializers.CharField(required=False, allow_blank=True, max_length=1000, help_text="Free-text note")
