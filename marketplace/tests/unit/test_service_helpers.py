from decimal import Decimal

import pytest

from marketplace.negotiation.domain.services.negotiation_service import parse_amount, synthesize_note
from marketplace.ordering.domain.models.order import Order
from marketplace.ordering.domain.services.fulfillment_service import clean_transfer_note, validate_shipping_address
from utils.logging_utils import mask_value, sanitize_payload

VALID_ADDRESS = {
    "full_name": "Lin Mei",
    "phone_number": "0912-345-678",
    "county": "taipei",
    "district": "Da'an",
    "address_line1": "No. 1, Sec. 4, Roosevelt Rd.",
    "postal_code": "106",
}


@pytest.mark.unit
class TestParseAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("15000", Decimal("15000")),
            (15000, Decimal("15000")),
            ("99.50", Decimal("99.50")),
            (Decimal("1"), Decimal("1")),
        ],
    )
    def test_valid_amounts(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "0", "-5", "1.234", "NaN", "Infinity", True, "1e20"])
    def test_invalid_amounts(self, value):
        assert parse_amount(value) is None


@pytest.mark.unit
class TestSynthesizeNote:
    @pytest.mark.parametrize(
        "note",
        [
            "Would you take NT$15,000?",
            "I can pay 15,000 today",
            "15000 cash, pickup this weekend",
        ],
    )
    def test_note_that_mentions_amount_is_kept(self, note):
        assert synthesize_note(note, Decimal("15000")) == note

    @pytest.mark.parametrize("note", [None, "", "   ", "Is it still available?", "I offer 150000", "Deal at 1500"])
    def test_note_without_amount_is_replaced(self, note):
        assert synthesize_note(note, Decimal("15000")) == "Offer: NT$15,000"


@pytest.mark.unit
class TestShippingAddressValidation:
    def test_valid_address(self):
        assert validate_shipping_address(VALID_ADDRESS, Order.ASSISTED_DELIVERY) == []

    def test_missing_fields_are_reported_per_field(self):
        errors = validate_shipping_address({"full_name": "Lin Mei"}, Order.ASSISTED_DELIVERY)
        assert "phone_number is required" in errors
        assert "postal_code is required" in errors
        assert "full_name is required" not in errors

    def test_self_pickup_needs_only_contact_details(self):
        address = {"full_name": "Lin Mei", "phone_number": "0912345678"}
        assert validate_shipping_address(address, Order.SELF_PICKUP) == []

    def test_malformed_phone_and_postal_code(self):
        errors = validate_shipping_address(
            dict(VALID_ADDRESS, phone_number="call me", postal_code="ABC"), Order.ASSISTED_DELIVERY
        )
        assert "phone_number is not a valid phone number" in errors
        assert "postal_code must be 3 to 6 digits" in errors

    def test_non_dict_address(self):
        assert validate_shipping_address("Taipei", Order.ASSISTED_DELIVERY) == ["shipping_address must be an object"]

    def test_transfer_note_is_cleaned(self):
        assert clean_transfer_note("  paid\x00 via ATM\n ") == "paid  via ATM"
        assert len(clean_transfer_note("x" * 500)) == 200


@pytest.mark.unit
class TestLogSanitizing:
    def test_personal_fields_are_masked(self):
        sanitized = sanitize_payload(VALID_ADDRESS)
        assert sanitized["county"] == "taipei"
        assert sanitized["postal_code"] == "106"
        assert sanitized["full_name"] == "***"
        assert "Roosevelt" not in sanitized["address_line1"]

    def test_mask_value(self):
        assert mask_value("buyer@example.com") == "bu***@example.com"
        assert mask_value("0912345678") == "***78"
        assert mask_value(42) == 42

    def test_empty_payload(self):
        assert sanitize_payload(None) == {}
