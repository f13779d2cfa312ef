"""
Fixed-rate currency conversion.

Rates are configured in settings.CURRENCY_RATES as "units of the platform
currency per one unit of the foreign currency", e.g. {"USD": Decimal("50")}
means 1 USD = 50 EGP.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from payments.exceptions import PaymentValidationError

TWO_PLACES = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _rate(currency: str) -> Decimal:
    currency = currency.upper()
    if currency == settings.PLATFORM_CURRENCY.upper():
        return Decimal("1")
    try:
        return Decimal(settings.CURRENCY_RATES[currency])
    except KeyError:
        raise PaymentValidationError(
            f"No conversion rate configured for {currency}",
            error_code="UNSUPPORTED_CURRENCY",
            details={"currency": currency},
        )


def convert(amount: Decimal, from_ccy: str, to_ccy: str) -> Decimal:
    """
    Convert amount between currencies using the configured fixed rates.

    Pure function of its inputs and settings; the result is rounded to
    2 decimal places (half up).

    Example:
        convert(Decimal("500.00"), "EGP", "USD")  # Decimal("10.00")
    """
    if from_ccy.upper() == to_ccy.upper():
        return quantize_money(amount)
    in_platform = Decimal(amount) * _rate(from_ccy)
    return quantize_money(in_platform / _rate(to_ccy))
