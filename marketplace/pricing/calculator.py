"""
Pricing Calculator

Pure, side-effect-free pricing functions shared by the negotiation and
fulfillment services: shipping cost, delivery window, tax, commission and
payment deadline. All amounts are Decimal and rounded to whole currency units.

Policy constants can be overridden in Django settings (see SHIPPING_*, TAX_RATE,
COMMISSION_RATE, PAYMENT_DEADLINE_DAYS); the defaults below are the policy.
"""

from datetime import datetime, timedelta
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

from django.conf import settings

Number = Union[Decimal, int, float, str]

SHIPPING_BASE_COST = Decimal("100")
SHIPPING_REMOTE_SURCHARGE = Decimal("50")
SHIPPING_WEIGHT_THRESHOLD_KG = Decimal("10")
SHIPPING_PER_KG_FEE = Decimal("20")
SHIPPING_REMOTE_REGIONS = ("penghu", "kinmen", "lienchiang", "taitung", "hualien")

DELIVERY_ISLAND_REGIONS = ("penghu", "kinmen", "lienchiang")
DELIVERY_MOUNTAIN_REGIONS = ("nantou", "hualien", "taitung")
DELIVERY_WINDOWS = {
    "island": {"min": 5, "max": 7},
    "mountain": {"min": 4, "max": 6},
    "default": {"min": 3, "max": 5},
}

TAX_RATE = Decimal("0.05")
COMMISSION_RATE = Decimal("0.035")
PAYMENT_DEADLINE_DAYS = 3
CURRENCY_PREFIX = "NT$"

SELF_PICKUP = "self_pickup"


def _setting(name: str, default):
    return getattr(settings, name, default)


def _decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_to_unit(value: Number) -> Decimal:
    """Round half-up to the nearest whole currency unit."""
    return _decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def normalize_region(region: Optional[str]) -> str:
    return (region or "").strip().lower()


def shipping_cost(region: Optional[str], weight_kg: Optional[Number] = None) -> Decimal:
    """
    Shipping cost for a parcel.

    base fee + remote surcharge (for remote regions) + per-kg fee for every
    started kilogram above the weight threshold.

    >>> shipping_cost("penghu", 12)
    Decimal('190')
    """
    cost = _decimal(_setting("SHIPPING_BASE_COST", SHIPPING_BASE_COST))

    remote_regions = _setting("SHIPPING_REMOTE_REGIONS", SHIPPING_REMOTE_REGIONS)
    if normalize_region(region) in remote_regions:
        cost += _decimal(_setting("SHIPPING_REMOTE_SURCHARGE", SHIPPING_REMOTE_SURCHARGE))

    if weight_kg is not None:
        threshold = _decimal(_setting("SHIPPING_WEIGHT_THRESHOLD_KG", SHIPPING_WEIGHT_THRESHOLD_KG))
        weight = _decimal(weight_kg)
        if weight > threshold:
            extra_kg = (weight - threshold).to_integral_value(rounding=ROUND_CEILING)
            cost += extra_kg * _decimal(_setting("SHIPPING_PER_KG_FEE", SHIPPING_PER_KG_FEE))

    return round_to_unit(cost)


def delivery_window(region: Optional[str]) -> Dict[str, int]:
    """Estimated delivery window in days: remote islands, mountainous regions, everywhere else."""
    region = normalize_region(region)
    if region in _setting("DELIVERY_ISLAND_REGIONS", DELIVERY_ISLAND_REGIONS):
        return dict(DELIVERY_WINDOWS["island"])
    if region in _setting("DELIVERY_MOUNTAIN_REGIONS", DELIVERY_MOUNTAIN_REGIONS):
        return dict(DELIVERY_WINDOWS["mountain"])
    return dict(DELIVERY_WINDOWS["default"])


def tax(subtotal: Number, rate: Optional[Number] = None) -> Decimal:
    if rate is None:
        rate = _setting("TAX_RATE", TAX_RATE)
    return round_to_unit(_decimal(subtotal) * _decimal(rate))


def commission(price: Number, rate: Optional[Number] = None) -> Dict[str, Decimal]:
    """
    Platform commission on a sale.

    Returns the fee, what the seller receives and the rate applied. Non-positive
    prices yield a zero breakdown.
    """
    if rate is None:
        rate = _setting("COMMISSION_RATE", COMMISSION_RATE)
    rate = _decimal(rate)
    price = _decimal(price)

    if price <= 0:
        return {"fee": Decimal("0"), "seller_receives": Decimal("0"), "rate": rate}

    fee = round_to_unit(price * rate)
    return {"fee": fee, "seller_receives": price - fee, "rate": rate}


def payment_deadline(now: datetime) -> datetime:
    days = _setting("PAYMENT_DEADLINE_DAYS", PAYMENT_DEADLINE_DAYS)
    return now + timedelta(days=days)


def order_total(
    subtotal: Number,
    region: Optional[str] = None,
    weight_kg: Optional[Number] = None,
    shipping_method: Optional[str] = None,
) -> Dict[str, Decimal]:
    """
    Price breakdown for a direct purchase: subtotal + shipping + tax on the subtotal.

    Self pickup ships for free.
    """
    subtotal = round_to_unit(subtotal)
    shipping = Decimal("0") if shipping_method == SELF_PICKUP else shipping_cost(region, weight_kg)
    tax_amount = tax(subtotal)
    return {
        "subtotal": subtotal,
        "shipping": shipping,
        "tax": tax_amount,
        "total": subtotal + shipping + tax_amount,
    }


def format_amount(amount: Number) -> str:
    """
    Display form of an amount: currency prefix and thousands separators, no decimals.

    >>> format_amount(Decimal("15000"))
    'NT$15,000'
    """
    prefix = _setting("CURRENCY_PREFIX", CURRENCY_PREFIX)
    whole = int(_decimal(amount))
    return f"{prefix}{whole:,}"
