from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.test import override_settings

from marketplace.pricing import (
    commission,
    delivery_window,
    format_amount,
    order_total,
    payment_deadline,
    shipping_cost,
    tax,
)


@pytest.mark.unit
class TestShippingCost:
    @pytest.mark.parametrize(
        "region, weight, expected",
        [
            ("taipei", None, Decimal("100")),
            (None, None, Decimal("100")),
            ("taipei", 10, Decimal("100")),  # threshold itself is free
            ("taipei", Decimal("10.1"), Decimal("120")),  # any started kilogram counts
            ("taichung", Decimal("11.5"), Decimal("140")),
            ("penghu", 12, Decimal("190")),  # base + remote + 2 * per-kg
            ("kinmen", 0, Decimal("150")),
            (" Hualien ", 15, Decimal("250")),
            ("nantou", 5, Decimal("100")),  # mountainous but not a surcharge region
        ],
    )
    def test_shipping_cost_table(self, region, weight, expected):
        assert shipping_cost(region, weight) == expected

    def test_remote_heavy_parcel_is_sum_of_policy_constants(self):
        base, surcharge, per_kg = Decimal("100"), Decimal("50"), Decimal("20")
        assert shipping_cost("lienchiang", 12) == base + surcharge + 2 * per_kg

    @override_settings(SHIPPING_BASE_COST=80, SHIPPING_PER_KG_FEE=30)
    def test_policy_constants_are_overridable(self):
        assert shipping_cost("taipei", 12) == Decimal("140")


@pytest.mark.unit
class TestDeliveryWindow:
    @pytest.mark.parametrize(
        "region, expected",
        [
            ("penghu", {"min": 5, "max": 7}),
            ("KINMEN", {"min": 5, "max": 7}),
            ("lienchiang", {"min": 5, "max": 7}),
            ("hualien", {"min": 4, "max": 6}),
            ("nantou", {"min": 4, "max": 6}),
            ("taitung", {"min": 4, "max": 6}),
            ("taipei", {"min": 3, "max": 5}),
            ("", {"min": 3, "max": 5}),
            (None, {"min": 3, "max": 5}),
        ],
    )
    def test_delivery_window_table(self, region, expected):
        assert delivery_window(region) == expected

    def test_returned_window_is_a_copy(self):
        window = delivery_window("taipei")
        window["min"] = 99
        assert delivery_window("taipei")["min"] == 3


@pytest.mark.unit
class TestTaxAndCommission:
    @pytest.mark.parametrize(
        "subtotal, expected",
        [
            (Decimal("15000"), Decimal("750")),
            (Decimal("333"), Decimal("17")),
            (Decimal("10"), Decimal("1")),  # 0.5 rounds half up
            (Decimal("0"), Decimal("0")),
        ],
    )
    def test_tax_table(self, subtotal, expected):
        assert tax(subtotal) == expected

    def test_tax_with_explicit_rate(self):
        assert tax(Decimal("1000"), rate="0.1") == Decimal("100")

    @pytest.mark.parametrize(
        "price, fee, seller_receives",
        [
            (Decimal("15000"), Decimal("525"), Decimal("14475")),
            (Decimal("100"), Decimal("4"), Decimal("96")),
            (Decimal("0"), Decimal("0"), Decimal("0")),
            (Decimal("-5"), Decimal("0"), Decimal("0")),
        ],
    )
    def test_commission_table(self, price, fee, seller_receives):
        breakdown = commission(price)
        assert breakdown["fee"] == fee
        assert breakdown["seller_receives"] == seller_receives
        assert breakdown["rate"] == Decimal("0.035")


@pytest.mark.unit
class TestDeadlineTotalsAndFormatting:
    def test_payment_deadline_is_three_days_out(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert payment_deadline(now) == now + timedelta(days=3)

    def test_order_total_for_remote_heavy_bike(self):
        totals = order_total(Decimal("20000"), "penghu", 12)
        assert totals == {
            "subtotal": Decimal("20000"),
            "shipping": Decimal("190"),
            "tax": Decimal("1000"),
            "total": Decimal("21190"),
        }

    def test_self_pickup_ships_free(self):
        totals = order_total(Decimal("20000"), "penghu", 12, shipping_method="self_pickup")
        assert totals["shipping"] == Decimal("0")
        assert totals["total"] == Decimal("21000")

    @pytest.mark.parametrize(
        "amount, expected",
        [
            (Decimal("15000"), "NT$15,000"),
            (Decimal("15000.00"), "NT$15,000"),
            (Decimal("1234567.89"), "NT$1,234,567"),
            (0, "NT$0"),
            ("980", "NT$980"),
        ],
    )
    def test_format_amount(self, amount, expected):
        assert format_amount(amount) == expected
