from decimal import Decimal

from app.money import currency_exponent, quantize, to_minor_units


def test_naira_converts_to_kobo():
    assert to_minor_units(Decimal("2500.00"), "NGN") == 250000
    assert to_minor_units(Decimal("0.01"), "NGN") == 1


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("10.005"), "NGN") == 1001
    assert to_minor_units(Decimal("10.004"), "NGN") == 1000


def test_zero_exponent_currency():
    assert currency_exponent("JPY") == 0
    assert to_minor_units(Decimal("1500"), "JPY") == 1500


def test_unknown_currency_defaults_to_two_decimals():
    assert currency_exponent("XYZ") == 2
    assert quantize("3.456", "XYZ") == Decimal("3.46")
