import uuid
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from marketplace.models import Listing, Order
from marketplace.tests.factories import AdminFactory, ListingFactory, OrderFactory, UserFactory

ADDRESS = {
    "full_name": "Wang Hao",
    "phone_number": "0987654321",
    "county": "penghu",
    "district": "Magong",
    "address_line1": "No. 32, Zhongzheng Rd.",
    "postal_code": "880",
}


class OrderApiTest(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.buyer = UserFactory()
        self.listing = ListingFactory(price=Decimal("20000"), weight_kg=Decimal("12"), region="penghu")
        self.client.force_authenticate(user=self.buyer)

    def create_order(self, **overrides):
        body = {"listing_id": str(self.listing.id), "shipping_address": ADDRESS}
        body.update(overrides)
        return self.client.post(reverse("marketplace:order-list"), body, format="json")

    def test_create_order(self):
        response = self.create_order()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()["data"]
        self.assertEqual(data["shipping_cost"], "190.00")
        self.assertEqual(data["tax_amount"], "1000.00")
        self.assertEqual(data["total_price"], "21190.00")
        self.assertEqual(data["formatted_total"], "NT$21,190")
        self.assertEqual(data["delivery_window"], {"min": 5, "max": 7})
        self.assertEqual(data["commission"]["fee"], "700")
        self.assertEqual(data["payment_status"], Order.PAYMENT_PENDING)

        instructions = data["payment_instructions"]
        self.assertEqual(instructions["amount"], "21190.00")
        self.assertEqual(instructions["formatted_amount"], "NT$21,190")
        self.assertEqual(instructions["bank_code"], "808")
        self.assertEqual(instructions["reference"], data["order_number"])
        self.assertEqual(instructions["deadline"], data["payment_deadline"])

    def test_create_order_missing_address_fields(self):
        response = self.create_order(shipping_address={"full_name": "Wang Hao"})

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        errors = response.json()["errors"]
        self.assertIn("phone_number is required", errors)
        self.assertIn("postal_code is required", errors)

    def test_create_order_bad_payment_method(self):
        response = self.create_order(payment_method="bitcoin")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["status"], "validation_error")

    def test_create_order_for_held_listing(self):
        OrderFactory(listing=self.listing)

        response = self.create_order()

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(Order.objects.filter(listing=self.listing).count(), 1)

    def test_create_order_unknown_listing(self):
        response = self.create_order(listing_id=str(uuid.uuid4()))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_only_own_orders(self):
        OrderFactory(buyer=self.buyer)
        OrderFactory()

        response = self.client.get(reverse("marketplace:order-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.json()["data"]), 1)

    def test_retrieve_permissions(self):
        order = OrderFactory(buyer=self.buyer)
        url = reverse("marketplace:order-detail", args=[order.id])

        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

        self.client.force_authenticate(user=order.listing.owner)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

        self.client.force_authenticate(user=AdminFactory())
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

        self.client.force_authenticate(user=UserFactory())
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(reverse("marketplace:order-detail", args=[uuid.uuid4()]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_payment_proof(self):
        order = OrderFactory(buyer=self.buyer)
        url = reverse("marketplace:order-payment-proof", args=[order.id])

        response = self.client.post(url, {"account_last_five_digits": "12345", "transfer_note": "ATM"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["payment_status"], Order.PAYMENT_AWAITING_CONFIRMATION)

    def test_payment_proof_bad_digits(self):
        order = OrderFactory(buyer=self.buyer)
        url = reverse("marketplace:order-payment-proof", args=[order.id])

        response = self.client.post(url, {"account_last_five_digits": "12"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel(self):
        order = OrderFactory(buyer=self.buyer)
        url = reverse("marketplace:order-cancel", args=[order.id])

        response = self.client.post(url, {"reason": "Changed my mind"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], Order.CANCELLED)
        self.assertEqual(response.json()["data"]["cancellation_reason"], "Changed my mind")

        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_cancel_someone_elses_order(self):
        order = OrderFactory()

        response = self.client.post(reverse("marketplace:order-cancel", args=[order.id]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.status, Listing.AVAILABLE)
