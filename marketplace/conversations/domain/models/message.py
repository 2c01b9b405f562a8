import uuid

from django.conf import settings
from django.db import models

from marketplace.listings.domain.models.listing import Listing


class Message(models.Model):
    """
    A conversation entry between two users about a listing.

    Offers are embedded in messages (see Offer.message); follow-up messages
    announcing an accepted or rejected offer are plain messages.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="sent_messages")
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="received_messages"
    )
    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name="messages")

    content = models.TextField()
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["listing", "created_at"], name="message_listing_created_idx"),
        ]

    def __str__(self):
        return f"Message {str(self.id)[:8]} from {self.sender_id} to {self.recipient_id}"

    @property
    def is_offer(self) -> bool:
        return hasattr(self, "offer")
