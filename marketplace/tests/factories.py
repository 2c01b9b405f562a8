from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.utils import timezone
from faker import Faker

from marketplace.models import Listing, Message, Offer, Order
from marketplace.pricing import format_amount, payment_deadline

User = get_user_model()
fake = Faker()

REGIONS = ["taipei", "new_taipei", "taichung", "tainan", "kaohsiung", "penghu", "hualien", "nantou"]
BIKE_TYPES = ["Road Bike", "Mountain Bike", "Gravel Bike", "City Bike", "Folding Bike"]


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user_{n}")
    email = factory.Sequence(lambda n: f"user_{n}@example.com")
    first_name = factory.LazyFunction(fake.first_name)
    last_name = factory.LazyFunction(fake.last_name)
    password = factory.PostGenerationMethodCall("set_password", "defaultpassword")
    is_active = True


class SellerFactory(UserFactory):
    username = factory.Sequence(lambda n: f"seller_{n}")
    email = factory.Sequence(lambda n: f"seller_{n}@example.com")


class AdminFactory(UserFactory):
    is_superuser = True
    is_staff = True
    username = factory.Sequence(lambda n: f"admin_{n}")
    email = factory.Sequence(lambda n: f"admin_{n}@example.com")


class ListingFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Listing

    owner = factory.SubFactory(SellerFactory)
    title = factory.LazyFunction(lambda: f"{fake.company()} {fake.random_element(BIKE_TYPES)}")
    description = factory.LazyFunction(lambda: fake.paragraph(nb_sentences=3))
    price = Decimal("20000.00")
    status = Listing.AVAILABLE
    weight_kg = Decimal("9.50")
    region = "taipei"


class MessageFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Message

    listing = factory.SubFactory(ListingFactory)
    sender = factory.SubFactory(UserFactory)
    recipient = factory.LazyAttribute(lambda o: o.listing.owner)
    content = factory.LazyFunction(fake.sentence)


class OfferFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Offer

    listing = factory.SubFactory(ListingFactory)
    proposer = factory.SubFactory(UserFactory)
    counterparty = factory.LazyAttribute(lambda o: o.listing.owner)
    amount = Decimal("15000.00")
    status = Offer.PENDING
    note = factory.LazyAttribute(lambda o: f"Offer: {format_amount(o.amount)}")
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(days=7))
    message = factory.LazyAttribute(
        lambda o: Message.objects.create(
            listing=o.listing, sender=o.proposer, recipient=o.counterparty, content=o.note
        )
    )


class OrderFactory(factory.django.DjangoModelFactory):
    """Direct-purchase order awaiting payment."""

    class Meta:
        model = Order

    buyer = factory.SubFactory(UserFactory)
    listing = factory.SubFactory(ListingFactory)
    subtotal = factory.LazyAttribute(lambda o: o.listing.price)
    shipping_cost = Decimal("100")
    tax_amount = factory.LazyAttribute(lambda o: (o.listing.price * Decimal("0.05")).quantize(Decimal("1")))
    total_price = factory.LazyAttribute(lambda o: o.subtotal + o.shipping_cost + o.tax_amount)
    status = Order.PENDING
    payment_status = Order.PAYMENT_PENDING
    payment_method = Order.BANK_TRANSFER
    payment_deadline = factory.LazyFunction(lambda: payment_deadline(timezone.now()))
    shipping_method = Order.ASSISTED_DELIVERY
    shipping_region = "taipei"
    shipping_address = factory.LazyFunction(
        lambda: {
            "full_name": fake.name(),
            "phone_number": "0912345678",
            "county": "taipei",
            "district": "Da'an",
            "address_line1": fake.street_address(),
            "postal_code": "106",
        }
    )
