"""
FulfillmentService - Order Lifecycle Management

Handles direct purchases, payment proof and confirmation, buyer cancellation,
admin sale review and the unpaid-order expiry sweep.

Every operation that reads a listing's availability and then writes depends on
it runs under the listing lock (see utils.transaction_utils.row_lock_guard) so
two buyers can never both obtain the same bicycle.
"""

import logging
import re
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from infrastructure.observability import get_tracer
from marketplace.domain.events.order_events import (
    OrderCancelledEvent,
    OrderPlacedEvent,
    PaymentConfirmedEvent,
    SaleApprovedEvent,
    SaleRejectedEvent,
)
from marketplace.infra.observability.metrics import (
    expired_records_total,
    listing_lock_wait_seconds,
    order_value,
    orders_created_total,
    sale_reviews_total,
)
from marketplace.listings.domain.models.listing import Listing
from marketplace.ordering.domain.models.order import Order
from marketplace.pricing import order_total, payment_deadline
from marketplace.services.base import BaseService, ErrorKind, ServiceResult, get_or_none, service_err, service_ok
from utils.logging_utils import sanitize_payload
from utils.rbac import is_admin
from utils.transaction_utils import retry_on_deadlock, rollback_safe_operation, row_lock_guard

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

ADDRESS_FIELDS = ("full_name", "phone_number", "county", "district", "address_line1", "address_line2", "postal_code")
REQUIRED_ADDRESS_FIELDS = ("full_name", "phone_number", "county", "district", "address_line1", "postal_code")
PICKUP_REQUIRED_FIELDS = ("full_name", "phone_number")

PHONE_PATTERN = re.compile(r"^\+?[\d\s-]{8,20}$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{3,6}$")
ACCOUNT_DIGITS_PATTERN = re.compile(r"^\d{5}$")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

MAX_TRANSFER_NOTE_LENGTH = 200

EXPIRED_REASON = "Payment deadline elapsed"
SALE_REJECTED_REASON = "Sale rejected by administrator"


def validate_shipping_address(address, shipping_method: str) -> List[str]:
    """Field-level messages for a shipping address; empty when valid."""
    if not isinstance(address, dict):
        return ["shipping_address must be an object"]

    required = PICKUP_REQUIRED_FIELDS if shipping_method == Order.SELF_PICKUP else REQUIRED_ADDRESS_FIELDS
    errors = []
    for field_name in required:
        value = address.get(field_name)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{field_name} is required")

    phone = address.get("phone_number")
    if isinstance(phone, str) and phone.strip() and not PHONE_PATTERN.match(phone.strip()):
        errors.append("phone_number is not a valid phone number")

    postal_code = address.get("postal_code")
    if isinstance(postal_code, str) and postal_code.strip() and not POSTAL_CODE_PATTERN.match(postal_code.strip()):
        errors.append("postal_code must be 3 to 6 digits")

    return errors


def clean_shipping_address(address: Dict) -> Dict:
    return {key: str(address[key]).strip() for key in ADDRESS_FIELDS if address.get(key) not in (None, "")}


def clean_transfer_note(note) -> str:
    return CONTROL_CHARS.sub(" ", str(note or "")).strip()[:MAX_TRANSFER_NOTE_LENGTH]


class FulfillmentService(BaseService):
    """
    Service for order creation, payment and admin-mediated sale review.
    """

    def __init__(self, event_bus=None):
        """
        Initialize FulfillmentService.

        Args:
            event_bus: Event bus for publishing domain events (injected, defaults to the global bus)
        """
        super().__init__()
        self.event_bus = event_bus

    # ------------------------------------------------------------------
    # Direct purchase
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def create_order(self, buyer, params: Dict) -> ServiceResult[Order]:
        """
        Buy an available listing outright.

        Args:
            buyer: Purchasing user
            params: ``listing_id``, ``payment_method``, ``shipping_method``,
                ``shipping_address`` (dict) and ``shipping_region``

        The listing status is left untouched; the open order itself holds the
        listing until payment is confirmed, cancelled or expired.
        """
        params = params or {}
        with tracer.start_as_current_span("order_create_transaction") as span:
            span.set_attribute("user.id", str(getattr(buyer, "pk", "")))

            payment_method = params.get("payment_method") or Order.BANK_TRANSFER
            if payment_method not in dict(Order.PAYMENT_METHOD_CHOICES):
                return service_err(ErrorKind.VALIDATION, f"Unsupported payment method: {payment_method}")
            shipping_method = params.get("shipping_method") or Order.ASSISTED_DELIVERY
            if shipping_method not in dict(Order.SHIPPING_METHOD_CHOICES):
                return service_err(ErrorKind.VALIDATION, f"Unsupported shipping method: {shipping_method}")

            listing_ref = get_or_none(Listing.objects.only("pk"), params.get("listing_id"))
            if listing_ref is None:
                return service_err(ErrorKind.NOT_FOUND, "Listing not found")
            listing_id = listing_ref.pk

            try:
                with row_lock_guard(listing_id) as waited:
                    listing_lock_wait_seconds.observe(waited)
                    with rollback_safe_operation("Order Creation"), transaction.atomic():
                        result = self._create_order_locked(buyer, listing_id, payment_method, shipping_method, params)
            except Exception as e:
                span.record_exception(e)
                self.logger.error(
                    f"Error creating order for listing {listing_id} "
                    f"(address {sanitize_payload(params.get('shipping_address'))}): {e}",
                    exc_info=True,
                )
                return service_err(ErrorKind.INTERNAL, "Failed to create order")

            if result.success:
                order = result.data
                orders_created_total.labels(source="direct", status=order.status).inc()
                order_value.observe(float(order.total_price))
                span.set_attribute("order.id", str(order.id))
            return result

    def _create_order_locked(self, buyer, listing_id, payment_method, shipping_method, params) -> ServiceResult[Order]:
        """Body of create_order; runs inside the listing lock and the transaction."""
        with tracer.start_as_current_span("lock_listing"):
            listing = Listing.objects.select_for_update().filter(pk=listing_id).first()
        if listing is None:
            return service_err(ErrorKind.NOT_FOUND, "Listing not found")

        if listing.owner_id == buyer.pk:
            return service_err(ErrorKind.UNPROCESSABLE, "You cannot buy your own listing")
        if not listing.is_purchasable:
            return service_err(ErrorKind.UNPROCESSABLE, f"Listing is not available (status: {listing.status})")
        if Order.objects.select_for_update().filter(listing=listing, status__in=Order.OPEN_STATUSES).exists():
            return service_err(ErrorKind.UNPROCESSABLE, "Listing is not available (another order is in progress)")

        address = params.get("shipping_address") or {}
        address_errors = validate_shipping_address(address, shipping_method)
        if address_errors:
            return service_err(ErrorKind.UNPROCESSABLE, *address_errors)

        region = params.get("shipping_region") or address.get("county") or ""
        with tracer.start_as_current_span("calculate_totals"):
            totals = order_total(listing.price, region, listing.weight_kg, shipping_method)

        with tracer.start_as_current_span("save_order"):
            order = Order.objects.create(
                buyer=buyer,
                listing=listing,
                subtotal=totals["subtotal"],
                shipping_cost=totals["shipping"],
                tax_amount=totals["tax"],
                total_price=totals["total"],
                payment_method=payment_method,
                payment_deadline=payment_deadline(timezone.now()),
                shipping_method=shipping_method,
                shipping_region=str(region).strip().lower(),
                shipping_address=clean_shipping_address(address),
            )

        OrderPlacedEvent(order, source="direct").publish_on_commit(self.event_bus)
        return service_ok(order)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def submit_payment_proof(self, order_id, buyer, details: Optional[Dict] = None) -> ServiceResult[Order]:
        """
        Record the buyer's bank-transfer details and wait for an admin to confirm them.

        ``details`` carries ``account_last_five_digits`` and an optional ``transfer_note``.
        """
        details = details or {}
        order = get_or_none(Order, order_id)
        if order is None:
            return service_err(ErrorKind.NOT_FOUND, "Order not found")
        if getattr(buyer, "pk", None) != order.buyer_id:
            return service_err(ErrorKind.FORBIDDEN, "Only the buyer can submit payment proof")

        digits = str(details.get("account_last_five_digits") or "").strip()
        if not ACCOUNT_DIGITS_PATTERN.match(digits):
            return service_err(ErrorKind.UNPROCESSABLE, "account_last_five_digits must be exactly 5 digits")

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(pk=order.pk)
                failure = self._payment_proof_precondition(order)
                if failure is not None:
                    return failure

                order.transition_payment(Order.PAYMENT_AWAITING_CONFIRMATION)
                order.payment_details = {
                    "account_last_five_digits": digits,
                    "transfer_note": clean_transfer_note(details.get("transfer_note")),
                    "submitted_at": timezone.now().isoformat(),
                }
                order.save(update_fields=["payment_status", "payment_details", "updated_at"])
        except Exception as e:
            self.logger.error(f"Error recording payment proof for order {order_id}: {e}", exc_info=True)
            return service_err(ErrorKind.INTERNAL, "Failed to submit payment proof")

        return service_ok(order)

    @staticmethod
    def _payment_proof_precondition(order: Order) -> Optional[ServiceResult]:
        if order.status != Order.PENDING or order.payment_status != Order.PAYMENT_PENDING:
            return service_err(
                ErrorKind.UNPROCESSABLE,
                f"Payment proof cannot be submitted (order {order.status}, payment {order.payment_status})",
            )
        if order.payment_method != Order.BANK_TRANSFER:
            return service_err(ErrorKind.UNPROCESSABLE, "Payment proof only applies to bank transfers")
        if order.payment_deadline and order.payment_deadline <= timezone.now():
            return service_err(ErrorKind.UNPROCESSABLE, "The payment deadline has passed")
        return None

    @BaseService.log_performance
    def confirm_payment(self, order_id, acting_admin) -> ServiceResult[Order]:
        """
        Confirm a submitted payment: payment paid, order processing and, for a
        direct purchase, listing reserved. Offer orders keep their sold listing.
        """
        with tracer.start_as_current_span("order_confirm_payment") as span:
            if not is_admin(acting_admin):
                return service_err(ErrorKind.FORBIDDEN, "Administrator access required")
            order = get_or_none(Order, order_id)
            if order is None:
                return service_err(ErrorKind.NOT_FOUND, "Order not found")
            span.set_attribute("order.id", str(order.id))

            try:
                with row_lock_guard(order.listing_id):
                    with rollback_safe_operation("Payment Confirmation"), transaction.atomic():
                        listing = Listing.objects.select_for_update().get(pk=order.listing_id)
                        order = Order.objects.select_for_update().get(pk=order.pk)

                        if order.payment_status != Order.PAYMENT_AWAITING_CONFIRMATION:
                            return service_err(
                                ErrorKind.UNPROCESSABLE,
                                f"No payment awaiting confirmation (payment {order.payment_status})",
                            )
                        if order.status != Order.PENDING:
                            return service_err(ErrorKind.UNPROCESSABLE, f"Order is already {order.status}")
                        held_by_offer = listing.status == Listing.SOLD and order.offer_id is not None
                        if listing.status != Listing.AVAILABLE and not held_by_offer:
                            return service_err(
                                ErrorKind.UNPROCESSABLE, f"Listing is not available (status: {listing.status})"
                            )

                        order.transition_payment(Order.PAYMENT_PAID)
                        order.transition_status(Order.PROCESSING)
                        order.reviewed_by = acting_admin
                        order.save(update_fields=["payment_status", "paid_at", "status", "reviewed_by", "updated_at"])
                        if listing.status == Listing.AVAILABLE:
                            listing.transition_to(Listing.RESERVED)

                        PaymentConfirmedEvent(order).publish_on_commit(self.event_bus)
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error confirming payment for order {order_id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to confirm payment")

            return service_ok(order)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def cancel_order(self, order_id, buyer, reason: Optional[str] = None) -> ServiceResult[Order]:
        """Buyer withdraws an order that has not been paid for yet."""
        order = get_or_none(Order, order_id)
        if order is None:
            return service_err(ErrorKind.NOT_FOUND, "Order not found")
        if getattr(buyer, "pk", None) != order.buyer_id:
            return service_err(ErrorKind.FORBIDDEN, "Only the buyer can cancel this order")

        reason = (reason or "").strip() or "Cancelled by buyer"
        try:
            with row_lock_guard(order.listing_id):
                with transaction.atomic():
                    order = Order.objects.select_for_update().get(pk=order.pk)
                    if order.status != Order.PENDING or order.payment_status != Order.PAYMENT_PENDING:
                        return service_err(
                            ErrorKind.UNPROCESSABLE,
                            f"Order cannot be cancelled (order {order.status}, payment {order.payment_status})",
                        )
                    order.transition_status(Order.CANCELLED)
                    order.cancellation_reason = reason
                    order.save(update_fields=["status", "cancelled_at", "cancellation_reason", "updated_at"])
                    self._warn_if_sold_listing_released(order)
                    OrderCancelledEvent(order, reason=reason).publish_on_commit(self.event_bus)
        except Exception as e:
            self.logger.error(f"Error cancelling order {order_id}: {e}", exc_info=True)
            return service_err(ErrorKind.INTERNAL, "Failed to cancel order")

        return service_ok(order)

    def _warn_if_sold_listing_released(self, order: Order) -> None:
        if order.offer_id is not None:
            self.logger.warning(
                f"Order {order.order_number} from an accepted offer was cancelled; "
                f"listing {order.listing_id} stays sold and needs admin follow-up"
            )

    # ------------------------------------------------------------------
    # Admin sale review
    # ------------------------------------------------------------------

    def _review_precondition(self, order: Order) -> Optional[ServiceResult]:
        if order.status in (Order.COMPLETED, Order.CANCELLED):
            return service_err(ErrorKind.UNPROCESSABLE, f"Order is already {order.status}")
        if not order.is_paid:
            return service_err(ErrorKind.UNPROCESSABLE, "Payment has not been confirmed for this order")
        return None

    @BaseService.log_performance
    def approve_sale(self, order_id, acting_admin) -> ServiceResult[Order]:
        """
        Approve a paid sale: listing sold, order completed.

        The listing must be reserved for this order; an order that came from an
        accepted offer already holds a sold listing.
        """
        with tracer.start_as_current_span("order_approve_sale") as span:
            if not is_admin(acting_admin):
                return service_err(ErrorKind.FORBIDDEN, "Administrator access required")
            order = get_or_none(Order, order_id)
            if order is None:
                return service_err(ErrorKind.NOT_FOUND, "Order not found")
            span.set_attribute("order.id", str(order.id))

            failure = self._review_precondition(order)
            if failure is not None:
                return failure

            try:
                with row_lock_guard(order.listing_id):
                    with rollback_safe_operation("Sale Approval"), transaction.atomic():
                        listing = Listing.objects.select_for_update().get(pk=order.listing_id)
                        order = Order.objects.select_for_update().get(pk=order.pk)

                        failure = self._review_precondition(order)
                        if failure is not None:
                            return failure
                        held_by_offer = listing.status == Listing.SOLD and order.offer_id is not None
                        if listing.status != Listing.RESERVED and not held_by_offer:
                            return service_err(
                                ErrorKind.UNPROCESSABLE, f"Listing is not reserved (status: {listing.status})"
                            )

                        if listing.status == Listing.RESERVED:
                            listing.transition_to(Listing.SOLD)
                        order.transition_status(Order.COMPLETED)
                        order.reviewed_by = acting_admin
                        order.save(update_fields=["status", "completed_at", "reviewed_by", "updated_at"])
                        SaleApprovedEvent(order, admin_id=acting_admin.pk).publish_on_commit(self.event_bus)
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error approving sale for order {order_id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to approve sale")

            sale_reviews_total.labels(decision="approved").inc()
            return service_ok(order)

    @BaseService.log_performance
    def reject_sale(self, order_id, acting_admin, reason: Optional[str] = None) -> ServiceResult[Order]:
        """
        Reject a paid sale: payment refunded, order cancelled, listing back on the market.
        """
        with tracer.start_as_current_span("order_reject_sale") as span:
            if not is_admin(acting_admin):
                return service_err(ErrorKind.FORBIDDEN, "Administrator access required")
            order = get_or_none(Order, order_id)
            if order is None:
                return service_err(ErrorKind.NOT_FOUND, "Order not found")
            span.set_attribute("order.id", str(order.id))

            failure = self._review_precondition(order)
            if failure is not None:
                return failure

            reason = (reason or "").strip()
            try:
                with row_lock_guard(order.listing_id):
                    with rollback_safe_operation("Sale Rejection"), transaction.atomic():
                        listing = Listing.objects.select_for_update().get(pk=order.listing_id)
                        order = Order.objects.select_for_update().get(pk=order.pk)

                        failure = self._review_precondition(order)
                        if failure is not None:
                            return failure

                        # Payment first: cancelled orders refuse payment transitions
                        order.transition_payment(Order.PAYMENT_REFUNDED)
                        order.transition_status(Order.CANCELLED)
                        order.cancellation_reason = reason or SALE_REJECTED_REASON
                        order.admin_notes = reason
                        order.reviewed_by = acting_admin
                        order.save(
                            update_fields=[
                                "payment_status",
                                "status",
                                "cancelled_at",
                                "cancellation_reason",
                                "admin_notes",
                                "reviewed_by",
                                "updated_at",
                            ]
                        )

                        if listing.status == Listing.RESERVED:
                            listing.transition_to(Listing.AVAILABLE)
                        else:
                            self._warn_if_sold_listing_released(order)

                        SaleRejectedEvent(order, admin_id=acting_admin.pk, reason=reason).publish_on_commit(
                            self.event_bus
                        )
            except Exception as e:
                span.record_exception(e)
                self.logger.error(f"Error rejecting sale for order {order_id}: {e}", exc_info=True)
                return service_err(ErrorKind.INTERNAL, "Failed to reject sale")

            sale_reviews_total.labels(decision="rejected").inc()
            return service_ok(order)

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def expire_unpaid_orders(self, now=None) -> ServiceResult[Dict]:
        """
        Cancel orders whose payment deadline passed while payment was still pending.

        Orders whose buyer already submitted proof are left for an admin to review.
        """
        now = now or timezone.now()
        candidates = list(
            Order.objects.filter(
                status=Order.PENDING, payment_status=Order.PAYMENT_PENDING, payment_deadline__lte=now
            ).values_list("pk", "listing_id")
        )

        expired = 0
        for order_pk, listing_id in candidates:
            if self._expire_order(order_pk, listing_id, now):
                expired += 1

        if expired:
            expired_records_total.labels(kind="order").inc(expired)
            self.logger.info(f"Expired {expired} unpaid orders")
        return service_ok({"expired": expired})

    @retry_on_deadlock(max_retries=3)
    def _expire_order(self, order_pk, listing_id, now) -> bool:
        """Cancel one overdue order in its own transaction. False when it moved on meanwhile."""
        with row_lock_guard(listing_id):
            with transaction.atomic():
                order = Order.objects.select_for_update().filter(pk=order_pk).first()
                if (
                    order is None
                    or order.status != Order.PENDING
                    or order.payment_status != Order.PAYMENT_PENDING
                    or order.payment_deadline is None
                    or order.payment_deadline > now
                ):
                    return False
                order.transition_payment(Order.PAYMENT_EXPIRED)
                order.transition_status(Order.CANCELLED)
                order.cancellation_reason = EXPIRED_REASON
                order.save(
                    update_fields=["payment_status", "status", "cancelled_at", "cancellation_reason", "updated_at"]
                )
                self._warn_if_sold_listing_released(order)
                OrderCancelledEvent(order, reason=EXPIRED_REASON).publish_on_commit(self.event_bus)
        return True
