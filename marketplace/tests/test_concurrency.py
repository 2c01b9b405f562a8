"""
Race tests: several threads drive the services against the same listing at once.

These run against a real (file) database so every thread gets its own
connection and its own transaction.
"""

import threading
from decimal import Decimal

from django.db import connection
from django.test import TransactionTestCase

from marketplace.models import Listing, Offer, Order
from marketplace.services import ErrorKind, FulfillmentService, NegotiationService
from marketplace.tests.factories import ListingFactory, OfferFactory, UserFactory

ADDRESS = {
    "full_name": "Chen Wei",
    "phone_number": "0912345678",
    "county": "taipei",
    "district": "Xinyi",
    "address_line1": "No. 7, Xinyi Rd.",
    "postal_code": "110",
}


def run_concurrently(*calls):
    """Start every call at the same moment and collect the results in call order."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)
    errors = []

    def worker(index, call):
        try:
            barrier.wait(timeout=10)
            results[index] = call()
        except Exception as e:
            errors.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    if errors:
        raise errors[0]
    return results


class ConcurrentPurchaseTest(TransactionTestCase):
    def setUp(self):
        self.listing = ListingFactory(price=Decimal("18000"))
        self.buyers = [UserFactory(), UserFactory()]

    def test_two_buyers_one_order(self):
        service = FulfillmentService()
        params = {"listing_id": self.listing.id, "shipping_address": ADDRESS}

        results = run_concurrently(
            lambda: service.create_order(self.buyers[0], params),
            lambda: service.create_order(self.buyers[1], params),
        )

        self.assertEqual(sorted(r.success for r in results), [False, True])
        loser = next(r for r in results if not r.success)
        self.assertEqual(loser.status, ErrorKind.UNPROCESSABLE)
        self.assertEqual(Order.objects.filter(listing=self.listing).count(), 1)


class ConcurrentAcceptTest(TransactionTestCase):
    def setUp(self):
        self.listing = ListingFactory(price=Decimal("18000"))
        self.offer = OfferFactory(listing=self.listing, amount=Decimal("16000"))
        self.seller = self.listing.owner

    def test_double_accept_creates_one_order(self):
        service = NegotiationService()

        results = run_concurrently(
            lambda: service.accept_offer(self.offer.id, self.seller),
            lambda: service.accept_offer(self.offer.id, self.seller),
        )

        self.assertEqual(sorted(r.success for r in results), [False, True])
        self.assertEqual(Order.objects.filter(listing=self.listing).count(), 1)
        self.offer.refresh_from_db()
        self.assertEqual(self.offer.status, Offer.ACCEPTED)

    def test_accepting_competing_offers_sells_once(self):
        rival = OfferFactory(listing=self.listing, amount=Decimal("17000"))
        service = NegotiationService()

        results = run_concurrently(
            lambda: service.accept_offer(self.offer.id, self.seller),
            lambda: service.accept_offer(rival.id, self.seller),
        )

        self.assertEqual(sorted(r.success for r in results), [False, True])
        loser = next(r for r in results if not r.success)
        self.assertEqual(loser.status, ErrorKind.UNPROCESSABLE)
        self.assertEqual(Order.objects.filter(listing=self.listing).count(), 1)
        statuses = sorted(Offer.objects.filter(listing=self.listing).values_list("status", flat=True))
        self.assertEqual(statuses, [Offer.ACCEPTED, Offer.REJECTED])

    def test_accept_races_direct_purchase(self):
        buyer = UserFactory()

        run_concurrently(
            lambda: NegotiationService().accept_offer(self.offer.id, self.seller),
            lambda: FulfillmentService().create_order(
                buyer, {"listing_id": self.listing.id, "shipping_address": ADDRESS}
            ),
        )

        # Whichever ran first, exactly one order holds the bicycle
        open_orders = Order.objects.filter(listing=self.listing, status__in=Order.OPEN_STATUSES)
        self.assertEqual(open_orders.count(), 1)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.status, Listing.SOLD)
