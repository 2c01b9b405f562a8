import secrets
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from marketplace.domain.exceptions import InvalidStatusTransition
from marketplace.listings.domain.models.listing import Listing
from marketplace.negotiation.domain.models.offer import Offer


def generate_order_number() -> str:
    """ORD-YYYYMMDD-XXXXXXXX"""
    return f"ORD-{timezone.now().strftime('%Y%m%d')}-{secrets.token_hex(4).upper()}"


DEFAULT_BANK_ACCOUNT = {
    "bank_name": "E.SUN Commercial Bank",
    "bank_code": "808",
    "branch": "Taipei Branch",
    "account_number": "1234567890123",
    "account_name": "RideCycle Co., Ltd.",
}

PAYMENT_NOTE = (
    "Please transfer the full amount before the deadline, quote the order number "
    "and keep the receipt as payment proof. Unpaid orders are cancelled automatically."
)


class Order(models.Model):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (PENDING, "Pending"),  # Default status, awaiting payment
        (PROCESSING, "Processing"),  # Payment confirmed, awaiting sale review
        (COMPLETED, "Completed"),  # Sale approved by admin
        (CANCELLED, "Cancelled"),
    ]

    OPEN_STATUSES = (PENDING, PROCESSING)

    PAYMENT_PENDING = "pending"
    PAYMENT_AWAITING_CONFIRMATION = "awaiting_confirmation"
    PAYMENT_PAID = "paid"
    PAYMENT_REFUNDED = "refunded"
    PAYMENT_EXPIRED = "expired"

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_AWAITING_CONFIRMATION, "Awaiting Confirmation"),  # Buyer submitted transfer proof
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_REFUNDED, "Refunded"),
        (PAYMENT_EXPIRED, "Expired"),  # Deadline elapsed unpaid
    ]

    ALLOWED_STATUS_TRANSITIONS = {
        PENDING: {PROCESSING, CANCELLED},
        PROCESSING: {COMPLETED, CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    ALLOWED_PAYMENT_TRANSITIONS = {
        PAYMENT_PENDING: {PAYMENT_AWAITING_CONFIRMATION, PAYMENT_EXPIRED},
        PAYMENT_AWAITING_CONFIRMATION: {PAYMENT_PAID},
        PAYMENT_PAID: {PAYMENT_REFUNDED},
        PAYMENT_REFUNDED: set(),
        PAYMENT_EXPIRED: set(),
    }

    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    CASH_ON_DELIVERY = "cash_on_delivery"

    PAYMENT_METHOD_CHOICES = [
        (BANK_TRANSFER, "Bank Transfer"),
        (CREDIT_CARD, "Credit Card"),
        (CASH_ON_DELIVERY, "Cash on Delivery"),
    ]

    ASSISTED_DELIVERY = "assisted_delivery"
    SELF_PICKUP = "self_pickup"

    SHIPPING_METHOD_CHOICES = [
        (ASSISTED_DELIVERY, "Assisted Delivery"),
        (SELF_PICKUP, "Self Pickup"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True, editable=False)
    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="orders")
    listing = models.ForeignKey(Listing, on_delete=models.PROTECT, related_name="orders")
    offer = models.OneToOneField(Offer, on_delete=models.SET_NULL, null=True, blank=True, related_name="order")

    # Order Details
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    payment_status = models.CharField(max_length=30, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=BANK_TRANSFER)
    payment_deadline = models.DateTimeField(null=True, blank=True)

    # Pricing
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    # Shipping Information
    shipping_method = models.CharField(max_length=20, choices=SHIPPING_METHOD_CHOICES, default=ASSISTED_DELIVERY)
    shipping_region = models.CharField(max_length=50, blank=True)
    shipping_address = models.JSONField(default=dict, blank=True)
    payment_details = models.JSONField(default=dict, blank=True)  # Transfer note, last five account digits

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Notes
    cancellation_reason = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="reviewed_orders"
    )

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["listing", "status"], name="order_listing_status_idx"),
            models.Index(fields=["payment_status", "payment_deadline"], name="order_payment_deadline_idx"),
        ]

    def __str__(self):
        return f"Order {self.order_number} by {self.buyer_id}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PAYMENT_PAID

    @property
    def payment_instructions(self) -> dict:
        """
        Where and how much to transfer for a bank-transfer order.

        The receiving account comes from ``settings.PAYMENT_BANK_ACCOUNT``;
        other payment methods get an empty dict.
        """
        if self.payment_method != self.BANK_TRANSFER:
            return {}
        instructions = dict(getattr(settings, "PAYMENT_BANK_ACCOUNT", None) or DEFAULT_BANK_ACCOUNT)
        instructions.update(
            amount=self.total_price,
            deadline=self.payment_deadline,
            reference=self.order_number,
            note=PAYMENT_NOTE,
        )
        return instructions

    def transition_status(self, status: str) -> None:
        """Move the order status (unsaved) or raise InvalidStatusTransition."""
        if status not in self.ALLOWED_STATUS_TRANSITIONS.get(self.status, set()):
            raise InvalidStatusTransition("Order", self.status, status)
        if status == self.COMPLETED and not self.is_paid:
            raise InvalidStatusTransition("Order", f"{self.status} (payment {self.payment_status})", status)

        self.status = status
        if status == self.COMPLETED:
            self.completed_at = timezone.now()
        elif status == self.CANCELLED:
            self.cancelled_at = timezone.now()

    def transition_payment(self, payment_status: str) -> None:
        """Move the payment status (unsaved) or raise InvalidStatusTransition."""
        if self.status == self.CANCELLED:
            raise InvalidStatusTransition("Cancelled order payment", self.payment_status, payment_status)
        if payment_status not in self.ALLOWED_PAYMENT_TRANSITIONS.get(self.payment_status, set()):
            raise InvalidStatusTransition("Order payment", self.payment_status, payment_status)

        self.payment_status = payment_status
        if payment_status == self.PAYMENT_PAID:
            self.paid_at = timezone.now()
