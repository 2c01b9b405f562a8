from django.contrib import admin, messages
from django.db import transaction

from utils.transaction_utils import row_lock_guard

from .models import Listing, Message, Offer, Order
from .services import FulfillmentService


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "price", "status", "region", "weight_kg", "created_at")
    list_filter = ("status", "region", "created_at")
    search_fields = ("title", "owner__username", "owner__email")
    # Availability only moves through the services and the moderation actions below
    readonly_fields = ("id", "status", "created_at", "updated_at")

    actions = ["approve_listings", "reject_listings"]

    def _moderate(self, request, queryset, target, label):
        moved = 0
        for pk in queryset.values_list("pk", flat=True):
            with row_lock_guard(pk), transaction.atomic():
                listing = Listing.objects.select_for_update().get(pk=pk)
                if listing.status != Listing.PENDING_REVIEW:
                    self.message_user(
                        request, f"{listing.title}: not awaiting review ({listing.status})", level=messages.WARNING
                    )
                    continue
                listing.transition_to(target)
                moved += 1
        self.message_user(request, f"{moved} listings {label}.")

    @admin.action(description="Approve selected listings for sale")
    def approve_listings(self, request, queryset):
        self._moderate(request, queryset, Listing.AVAILABLE, "approved")

    @admin.action(description="Reject selected listings")
    def reject_listings(self, request, queryset):
        self._moderate(request, queryset, Listing.REJECTED, "rejected")


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "listing", "sender", "recipient", "is_read", "created_at")
    list_filter = ("is_read", "created_at")
    search_fields = ("content", "sender__username", "recipient__username")
    readonly_fields = ("id", "created_at")


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ("id", "listing", "proposer", "counterparty", "amount", "status", "expires_at", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("listing__title", "proposer__username", "counterparty__username")
    # Offer status only moves through NegotiationService
    readonly_fields = ("id", "message", "status", "responded_at", "created_at", "updated_at")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "buyer",
        "listing",
        "status",
        "payment_status",
        "total_price",
        "payment_deadline",
        "created_at",
    )
    list_filter = ("status", "payment_status", "payment_method", "shipping_method", "created_at")
    search_fields = ("order_number", "buyer__username", "buyer__email", "listing__title")
    readonly_fields = (
        "id",
        "order_number",
        "status",
        "payment_status",
        "paid_at",
        "completed_at",
        "cancelled_at",
        "reviewed_by",
        "created_at",
        "updated_at",
    )

    fieldsets = (
        ("Order Information", {"fields": ("id", "order_number", "buyer", "listing", "offer", "status")}),
        ("Payment", {"fields": ("payment_status", "payment_method", "payment_deadline", "payment_details", "paid_at")}),
        ("Pricing", {"fields": ("subtotal", "shipping_cost", "tax_amount", "total_price")}),
        ("Shipping", {"fields": ("shipping_method", "shipping_region", "shipping_address")}),
        (
            "Review",
            {"fields": ("reviewed_by", "admin_notes", "cancellation_reason", "completed_at", "cancelled_at")},
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    actions = ["confirm_payment", "approve_sale", "reject_sale"]

    def _run(self, request, queryset, operation, label):
        service = FulfillmentService()
        done = 0
        for order in queryset:
            result = getattr(service, operation)(order.pk, request.user)
            if result.success:
                done += 1
            else:
                self.message_user(request, f"{order.order_number}: {result.error_detail}", level=messages.WARNING)
        self.message_user(request, f"{done} orders {label}.")

    @admin.action(description="Confirm payment for selected orders")
    def confirm_payment(self, request, queryset):
        self._run(request, queryset, "confirm_payment", "confirmed")

    @admin.action(description="Approve sale for selected orders")
    def approve_sale(self, request, queryset):
        self._run(request, queryset, "approve_sale", "approved")

    @admin.action(description="Reject sale (refund) for selected orders")
    def reject_sale(self, request, queryset):
        self._run(request, queryset, "reject_sale", "rejected")
