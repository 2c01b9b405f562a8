import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from marketplace.conversations.domain.models.message import Message
from marketplace.domain.exceptions import InvalidStatusTransition
from marketplace.listings.domain.models.listing import Listing
from marketplace.pricing import format_amount


class Offer(models.Model):
    """A proposed price for a listing, embedded in a conversation message."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (ACCEPTED, "Accepted"),
        (REJECTED, "Rejected"),
        (EXPIRED, "Expired"),
    ]

    ALLOWED_TRANSITIONS = {
        PENDING: {ACCEPTED, REJECTED, EXPIRED},
        ACCEPTED: set(),
        REJECTED: set(),
        EXPIRED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    message = models.OneToOneField(Message, on_delete=models.CASCADE, related_name="offer")
    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name="offers")
    proposer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="offers_made")
    counterparty = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="offers_received"
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    note = models.TextField(blank=True)

    expires_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        constraints = [
            # One open offer per proposer per listing
            models.UniqueConstraint(
                fields=["listing", "proposer"],
                condition=Q(status="pending"),
                name="unique_pending_offer_per_proposer",
            ),
        ]
        indexes = [
            models.Index(fields=["listing", "status"], name="offer_listing_status_idx"),
            models.Index(fields=["status", "expires_at"], name="offer_status_expires_idx"),
        ]

    def __str__(self):
        return f"Offer {str(self.id)[:8]} of {self.formatted_amount} ({self.status})"

    @property
    def formatted_amount(self) -> str:
        return format_amount(self.amount)

    @property
    def is_pending(self) -> bool:
        return self.status == self.PENDING

    def can_transition_to(self, status: str) -> bool:
        return status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, status: str, responded_at=None, save: bool = True) -> None:
        """Move to ``status`` or raise InvalidStatusTransition. Terminal states never move."""
        if not self.can_transition_to(status):
            raise InvalidStatusTransition("Offer", self.status, status)
        self.status = status
        if responded_at is not None:
            self.responded_at = responded_at
        if save:
            self.save(update_fields=["status", "responded_at", "updated_at"])
