import uuid

from django.conf import settings
from django.db import models

from marketplace.domain.exceptions import InvalidStatusTransition


class Listing(models.Model):
    """A bicycle offered for sale, with its availability state machine."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    REJECTED = "rejected"
    ARCHIVED = "archived"

    STATUS_CHOICES = [
        (DRAFT, "Draft"),
        (PENDING_REVIEW, "Pending Review"),
        (AVAILABLE, "Available"),
        (RESERVED, "Reserved"),  # Payment confirmed, awaiting admin sale review
        (SOLD, "Sold"),
        (REJECTED, "Rejected"),  # Rejected by moderation, owner may edit and resubmit
        (ARCHIVED, "Archived"),
    ]

    ALLOWED_TRANSITIONS = {
        DRAFT: {PENDING_REVIEW, ARCHIVED},
        PENDING_REVIEW: {AVAILABLE, REJECTED, ARCHIVED},
        AVAILABLE: {RESERVED, SOLD, REJECTED, ARCHIVED},
        RESERVED: {AVAILABLE, SOLD, ARCHIVED},
        REJECTED: {DRAFT, ARCHIVED},
        SOLD: set(),
        ARCHIVED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="listings")

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING_REVIEW)

    # Shipping metadata
    weight_kg = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    region = models.CharField(max_length=50, blank=True)  # County slug, e.g. "taipei", "penghu"

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["status", "-created_at"], name="listing_status_created_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_offerable(self) -> bool:
        return self.status == self.AVAILABLE

    @property
    def is_purchasable(self) -> bool:
        return self.status == self.AVAILABLE

    def can_transition_to(self, status: str) -> bool:
        return status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, status: str, save: bool = True) -> None:
        """Move to ``status`` or raise InvalidStatusTransition."""
        if not self.can_transition_to(status):
            raise InvalidStatusTransition("Listing", self.status, status)
        self.status = status
        if save:
            self.save(update_fields=["status", "updated_at"])
