"""
Currency conversion between the booking domain and the payment boundary.

Bookings and catalog prices are held in major units as ``Decimal``; everything
that crosses the payment gateway is an integer amount of minor units
(kobo for NGN, cents for USD). This module is the only place that converts
between the two.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

# Number of decimal places of the minor unit per ISO 4217 currency
CURRENCY_EXPONENTS = {
    "NGN": 2,
    "GHS": 2,
    "KES": 2,
    "ZAR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
}

DEFAULT_EXPONENT = 2


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency.upper(), DEFAULT_EXPONENT)


def quantize(amount: Union[Decimal, int, str], currency: str) -> Decimal:
    """Round a major-unit amount to the currency's minor-unit precision"""
    exponent = currency_exponent(currency)
    step = Decimal(1).scaleb(-exponent)
    return Decimal(amount).quantize(step, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Union[Decimal, int, str], currency: str) -> int:
    """Convert a major-unit amount (e.g. naira) to integer minor units (e.g. kobo)"""
    exponent = currency_exponent(currency)
    return int(quantize(amount, currency).scaleb(exponent))
