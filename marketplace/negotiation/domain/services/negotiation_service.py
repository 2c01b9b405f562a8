"""
NegotiationService - Offer Lifecycle Management

Handles offer creation, acceptance and rejection. Acceptance is the one place
where an offer becomes an order: the offer, the listing, the new order, the
follow-up message and every competing offer change together or not at all.
"""

import logging
import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from infrastructure.observability import get_tracer
from marketplace.conversations.domain.models.message import Message
from marketplace.domain.events.offer_events import (
    OfferAcceptedEvent,
    OfferCreatedEvent,
    OfferExpiredEvent,
    OfferRejectedEvent,
)
from marketplace.domain.events.order_events import OrderCancelledEvent, OrderPlacedEvent
from marketplace.infra.observability.metrics import (
    expired_records_total,
    listing_lock_wait_seconds,
    offers_created_total,
    offers_resolved_total,
    order_value,
    orders_created_total,
)
from marketplace.listings.domain.models.listing import Listing
from marketplace.negotiation.domain.models.offer import Offer
from marketplace.ordering.domain.models.order import Order
from marketplace.pricing import format_amount, payment_deadline
from marketplace.services.base import BaseService, ErrorKind, ServiceResult, get_or_none, service_err, service_ok
from utils.transaction_utils import retry_on_deadlock, rollback_safe_operation, row_lock_guard

User = get_user_model()
logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

OFFER_EXPIRY_DAYS = 7
MAX_OFFER_AMOUNT = Decimal("9999999999.99")

ACCEPTANCE_MESSAGE = (
    "I accepted your offer {amount}! Your order number is {order_number}. "
    "Please contact me to complete the transaction."
)
REJECTION_MESSAGE = "Sorry, I rejected your offer {amount}."
SUPERSEDED_ORDER_REASON = "Listing sold through an accepted offer"


def parse_amount(value) -> Optional[Decimal]:
    """Positive, finite amount with at most two decimals, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0 or amount > MAX_OFFER_AMOUNT:
        return None
    if amount != amount.quantize(Decimal("0.01")):
        return None
    return amount


def note_mentions_amount(note: str, amount: Decimal) -> bool:
    """True when the note already carries the amount (formatted or plain, with or without separators)."""
    whole = int(amount)
    for candidate in {format_amount(amount), f"{whole:,}", str(whole)}:
        if re.search(rf"(?<![\d,]){re.escape(candidate)}(?![\d,])", note):
            return True
    return False


def synthesize_note(note: Optional[str], amount: Decimal) -> str:
    """Keep a note that states the amount, otherwise replace it with "Offer: <amount>"."""
    note = (note or "").strip()
    if note and note_mentions_amount(note, amount):
        return note
    return f"Offer: {format_amount(amount)}"


def existing_offer_summary(offer: Offer) -> Dict:
    return {
        "existing_offer": {
            "id": str(offer.id),
            "amount": str(offer.amount),
            "status": offer.status,
            "created_at": offer.created_at.isoformat(),
        }
    }


class NegotiationService(BaseService):
    """
    Service for the offer state machine and its hand-off to ordering.
    """

    def __init__(self, event_bus=None):
        """
        Initialize NegotiationService.

        Args:
            event_bus: Event bus for publishing domain events (injected, defaults to the global bus)
        """
        super().__init__()
        self.event_bus = event_bus

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def create_offer(self, proposer, params: Dict) -> ServiceResult[Offer]:
        """
        Create a pending offer embedded in a new conversation message.

        Args:
            proposer: User making the offer
            params: ``listing_id``, ``amount``, optional ``counterparty_id`` (defaults
                to the listing owner) and optional ``note``

        Returns:
            ServiceResult with the created Offer
        """
        params = params or {}
        with tracer.start_as_current_span("offer_create") as span:
            span.set_attribute("user.id", str(getattr(proposer, "pk", "")))

            amount = parse_amount(params.get("amount"))
            if amount is None:
                return service_err(ErrorKind.VALIDATION, "Amount must be a positive number with at most two decimals")

            listing = get_or_none(Listing.objects.select_related("owner"), params.get("listing_id"))
            if listing is None:
                return service_err(ErrorKind.NOT_FOUND, "Listing not found")
            span.set_attribute("listing.id", str(listing.id))

            counterparty_id = params.get("counterparty_id")
            if counterparty_id in (None, ""):
                counterparty = listing.owner
            else:
                counterparty = get_or_none(User, counterparty_id)
                if counterparty is None:
                    return service_err(ErrorKind.NOT_FOUND, "Counterparty not found")

            if proposer.pk == counterparty.pk:
                return service_err(ErrorKind.UNPROCESSABLE, "You cannot make an offer to yourself")
            if proposer.pk == listing.owner_id:
                return service_err(ErrorKind.UNPROCESSABLE, "You cannot make an offer on your own listing")
            if counterparty.pk != listing.owner_id:
                return service_err(ErrorKind.UNPROCESSABLE, "Offers must be addressed to the listing owner")
            if not listing.is_offerable:
                return service_err(ErrorKind.UNPROCESSABLE, f"Listing is not accepting offers (status: {listing.status})")
            existing = self._pending_offer(listing, proposer)
            if existing is not None:
                return self._duplicate_offer(existing)

            note = synthesize_note(params.get("note"), amount)
            now = timezone.now()
            expiry_days = getattr(settings, "OFFER_EXPIRY_DAYS", OFFER_EXPIRY_DAYS)

            try:
                with transaction.atomic():
                    message = Message.objects.create(
                        sender=proposer, recipient=counterparty, listing=listing, content=note
                    )
                    offer = Offer.objects.create(
                        message=message,
                        listing=listing,
                        proposer=proposer,
                        counterparty=counterparty,
                        amount=amount,
                        note=note,
                        expires_at=now + timedelta(days=expiry_days),
                    )
                    OfferCreatedEvent(offer).publish_on_commit(self.event_bus)
            except IntegrityError:
                # Lost the race against a concurrent offer from the same proposer
                self.logger.info(f"Duplicate pending offer rejected by constraint for listing {listing.id}")
                return self._duplicate_offer(self._pending_offer(listing, proposer))
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error creating offer on listing {listing.id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to create offer")

            offers_created_total.labels(status="pending").inc()
            span.set_attribute("offer.id", str(offer.id))
            return service_ok(offer)

    @staticmethod
    def _pending_offer(listing, proposer) -> Optional[Offer]:
        return Offer.objects.filter(listing=listing, proposer=proposer, status=Offer.PENDING).first()

    @staticmethod
    def _duplicate_offer(existing: Optional[Offer]) -> ServiceResult:
        meta = existing_offer_summary(existing) if existing is not None else None
        return service_err(ErrorKind.UNPROCESSABLE, "You already have a pending offer on this listing", meta=meta)

    # ------------------------------------------------------------------
    # Accept
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def accept_offer(self, offer_id, acting_user) -> ServiceResult[Dict]:
        """
        Accept a pending offer, turning it into an order.

        Effects (all-or-nothing): offer accepted, listing sold, order created for
        the proposer at the offer amount, acceptance message sent, competing
        pending offers rejected and unpaid direct-purchase orders cancelled.

        Returns:
            ServiceResult with ``accepted_offer``, ``response_message`` and ``order``
        """
        with tracer.start_as_current_span("offer_accept_transaction") as span:
            offer = get_or_none(Offer.objects.select_related("listing"), offer_id)
            if offer is None:
                return service_err(ErrorKind.NOT_FOUND, "Offer not found")
            span.set_attribute("offer.id", str(offer.id))
            span.set_attribute("listing.id", str(offer.listing_id))

            if not User.objects.filter(pk=offer.proposer_id, is_active=True).exists():
                return service_err(ErrorKind.UNPROCESSABLE, "The user who made this offer no longer exists")
            if getattr(acting_user, "pk", None) != offer.counterparty_id:
                return service_err(ErrorKind.FORBIDDEN, "Only the recipient of an offer can accept it")
            if not offer.is_pending:
                return service_err(ErrorKind.UNPROCESSABLE, f"Offer has already been {offer.status}")
            if not offer.listing.is_offerable:
                return service_err(
                    ErrorKind.UNPROCESSABLE, f"Listing is no longer available (status: {offer.listing.status})"
                )

            try:
                with row_lock_guard(offer.listing_id) as waited:
                    listing_lock_wait_seconds.observe(waited)
                    with rollback_safe_operation("Offer Acceptance"), transaction.atomic():
                        result = self._accept_locked(offer.pk, offer.listing_id)
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error accepting offer {offer_id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to accept offer")

            if result.success:
                order = result.data["order"]
                offers_resolved_total.labels(outcome="accepted").inc()
                if result.data["rejected_offers"]:
                    offers_resolved_total.labels(outcome="rejected").inc(len(result.data["rejected_offers"]))
                orders_created_total.labels(source="offer", status=order.status).inc()
                order_value.observe(float(order.total_price))
                span.set_attribute("order.id", str(order.id))
            return result

    def _accept_locked(self, offer_pk, listing_id) -> ServiceResult[Dict]:
        """
        Body of accept_offer; runs inside the listing lock and the transaction.

        Row locks are taken listing first, then offers, then orders, the same
        order every other listing-scoped operation uses.
        """
        listing = Listing.objects.select_for_update().get(pk=listing_id)
        offer = Offer.objects.select_for_update().get(pk=offer_pk)
        competing = list(
            Offer.objects.select_for_update().filter(listing=listing, status=Offer.PENDING).exclude(pk=offer.pk)
        )

        # State may have moved while waiting for the lock
        if not offer.is_pending:
            return service_err(ErrorKind.UNPROCESSABLE, f"Offer has already been {offer.status}")
        if not listing.is_offerable:
            return service_err(ErrorKind.UNPROCESSABLE, f"Listing is no longer available (status: {listing.status})")

        open_orders = list(Order.objects.select_for_update().filter(listing=listing, status__in=Order.OPEN_STATUSES))
        if any(o.payment_status != Order.PAYMENT_PENDING for o in open_orders):
            return service_err(ErrorKind.UNPROCESSABLE, "A payment for this listing is awaiting confirmation")

        now = timezone.now()

        with tracer.start_as_current_span("transition_offer_and_listing"):
            offer.transition_to(Offer.ACCEPTED, responded_at=now)
            listing.transition_to(Listing.SOLD)

        with tracer.start_as_current_span("supersede_direct_orders"):
            for superseded in open_orders:
                superseded.transition_status(Order.CANCELLED)
                superseded.cancellation_reason = SUPERSEDED_ORDER_REASON
                superseded.save(update_fields=["status", "cancelled_at", "cancellation_reason", "updated_at"])
                OrderCancelledEvent(superseded, reason=SUPERSEDED_ORDER_REASON).publish_on_commit(self.event_bus)

        with tracer.start_as_current_span("save_order"):
            order = Order.objects.create(
                buyer_id=offer.proposer_id,
                listing=listing,
                offer=offer,
                subtotal=offer.amount,
                shipping_cost=Decimal("0"),
                tax_amount=Decimal("0"),
                total_price=offer.amount,
                payment_method=Order.BANK_TRANSFER,
                payment_deadline=payment_deadline(now),
                shipping_region=listing.region,
            )

        response_message = Message.objects.create(
            sender_id=offer.counterparty_id,
            recipient_id=offer.proposer_id,
            listing=listing,
            content=ACCEPTANCE_MESSAGE.format(amount=offer.formatted_amount, order_number=order.order_number),
        )

        with tracer.start_as_current_span("reject_competing_offers"):
            for other in competing:
                other.transition_to(Offer.REJECTED, responded_at=now)
                OfferRejectedEvent(other, cascade=True).publish_on_commit(self.event_bus)
            if competing:
                self.logger.info(f"Rejected {len(competing)} competing offers on listing {listing.id}")

        OfferAcceptedEvent(offer, order).publish_on_commit(self.event_bus)
        OrderPlacedEvent(order, source="offer").publish_on_commit(self.event_bus)

        return service_ok(
            {
                "accepted_offer": offer,
                "response_message": response_message,
                "order": order,
                "rejected_offers": competing,
            }
        )

    # ------------------------------------------------------------------
    # Reject
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def reject_offer(self, offer_id, acting_user) -> ServiceResult[Dict]:
        """
        Reject a pending offer and tell the proposer.

        Listing availability is not checked; rejecting is always allowed while
        the offer is pending.
        """
        with tracer.start_as_current_span("offer_reject_transaction") as span:
            offer = get_or_none(Offer, offer_id)
            if offer is None:
                return service_err(ErrorKind.NOT_FOUND, "Offer not found")
            span.set_attribute("offer.id", str(offer.id))

            if getattr(acting_user, "pk", None) != offer.counterparty_id:
                return service_err(ErrorKind.FORBIDDEN, "Only the recipient of an offer can reject it")
            if not offer.is_pending:
                return service_err(ErrorKind.UNPROCESSABLE, f"Offer has already been {offer.status}")

            try:
                with row_lock_guard(offer.listing_id):
                    with transaction.atomic():
                        offer = Offer.objects.select_for_update().get(pk=offer.pk)
                        if not offer.is_pending:
                            return service_err(ErrorKind.UNPROCESSABLE, f"Offer has already been {offer.status}")

                        offer.transition_to(Offer.REJECTED, responded_at=timezone.now())
                        response_message = Message.objects.create(
                            sender_id=offer.counterparty_id,
                            recipient_id=offer.proposer_id,
                            listing_id=offer.listing_id,
                            content=REJECTION_MESSAGE.format(amount=offer.formatted_amount),
                        )
                        OfferRejectedEvent(offer).publish_on_commit(self.event_bus)
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error rejecting offer {offer_id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to reject offer")

            offers_resolved_total.labels(outcome="rejected").inc()
            return service_ok({"rejected_offer": offer, "response_message": response_message})

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def expire_stale_offers(self, now=None) -> ServiceResult[Dict]:
        """
        Move pending offers whose ``expires_at`` has passed to ``expired``.

        Each offer is expired in its own transaction under its listing lock, so
        a concurrent accept either wins or sees the offer already expired.
        """
        now = now or timezone.now()
        candidates = list(
            Offer.objects.filter(status=Offer.PENDING, expires_at__lte=now).values_list("pk", "listing_id")
        )

        expired = 0
        for offer_pk, listing_id in candidates:
            if self._expire_offer(offer_pk, listing_id, now):
                expired += 1

        if expired:
            expired_records_total.labels(kind="offer").inc(expired)
            offers_resolved_total.labels(outcome="expired").inc(expired)
            self.logger.info(f"Expired {expired} stale offers")
        return service_ok({"expired": expired})

    @retry_on_deadlock(max_retries=3)
    def _expire_offer(self, offer_pk, listing_id, now) -> bool:
        """Expire one offer in its own transaction. False when it was resolved meanwhile."""
        with row_lock_guard(listing_id):
            with transaction.atomic():
                offer = Offer.objects.select_for_update().filter(pk=offer_pk).first()
                if offer is None or not offer.is_pending or offer.expires_at is None or offer.expires_at > now:
                    return False
                offer.transition_to(Offer.EXPIRED, responded_at=now)
                OfferExpiredEvent(offer).publish_on_commit(self.event_bus)
        return True
