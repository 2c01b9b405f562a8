from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from marketplace.models import Offer, Order
from marketplace.services import ErrorKind, service_err
from marketplace.tasks import expire_stale_offers_task, expire_unpaid_orders_task
from marketplace.tests.factories import OfferFactory, OrderFactory


class ExpiryTasksTest(TestCase):
    def test_expire_stale_offers_task(self):
        stale = OfferFactory(expires_at=timezone.now() - timedelta(minutes=5))
        OfferFactory()

        result = expire_stale_offers_task.apply().get()

        self.assertEqual(result, {"success": True, "expired": 1})
        stale.refresh_from_db()
        self.assertEqual(stale.status, Offer.EXPIRED)

    def test_expire_unpaid_orders_task(self):
        overdue = OrderFactory(payment_deadline=timezone.now() - timedelta(minutes=5))

        result = expire_unpaid_orders_task.apply().get()

        self.assertEqual(result, {"success": True, "expired": 1})
        overdue.refresh_from_db()
        self.assertEqual(overdue.status, Order.CANCELLED)

    def test_failed_sweep_is_reported(self):
        with mock.patch(
            "marketplace.services.NegotiationService.expire_stale_offers",
            return_value=service_err(ErrorKind.INTERNAL, "sweep failed"),
        ):
            result = expire_stale_offers_task.apply().get()

        self.assertEqual(result, {"success": False, "errors": ["sweep failed"]})

    def test_task_routing(self):
        self.assertEqual(expire_stale_offers_task.queue, "marketplace_tasks")
        self.assertEqual(expire_unpaid_orders_task.max_retries, 3)
