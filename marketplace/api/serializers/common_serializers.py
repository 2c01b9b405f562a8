from django.contrib.auth import get_user_model
from rest_framework import serializers

from marketplace.conversations.domain.models.message import Message
from marketplace.listings.domain.models.listing import Listing

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username"]
        read_only_fields = fields


class ListingSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Listing
        fields = ["id", "title", "price", "status", "region", "weight_kg", "owner"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    is_offer = serializers.BooleanField(read_only=True)

    class Meta:
        model = Message
        fields = ["id", "listing", "sender", "recipient", "content", "is_offer", "is_read", "created_at"]
        read_only_fields = fields
