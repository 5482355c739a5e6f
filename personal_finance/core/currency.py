"""
Money rounding and formatting.

Amounts are ``Decimal`` end to end; floats only appear in user input and are
converted through ``str`` to avoid binary rounding artefacts.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from babel.numbers import format_currency as babel_format_currency

from personal_finance.core.config import settings


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a numeric value to Decimal.

    Args:
        value: Decimal, int, float, str or None

    Returns:
        Decimal value (``0`` for None)
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(amount: Decimal, decimals: int = 2) -> Decimal:
    """
    Round currency amount to specified decimals (default 2 for EUR).

    Uses ROUND_HALF_UP (commercial rounding).

    Args:
        amount: Amount to round
        decimals: Number of decimal places

    Returns:
        Rounded amount
    """
    quantize_to = Decimal(10) ** -decimals
    return amount.quantize(quantize_to, rounding=ROUND_HALF_UP)


def format_amount(value: Any) -> str:
    """
    Fixed-point text with two decimals and a dot separator.

    This is the machine-readable representation used in CSV files.

    Examples:
        >>> format_amount(Decimal("-20"))
        '-20.00'
        >>> format_amount("1234.567")
        '1234.57'
    """
    return f"{round_currency(to_decimal(value)):.2f}"


def format_currency(
    amount: Any,
    currency: Optional[str] = None,
    locale: Optional[str] = None,
) -> str:
    """
    Format currency amount for display.

    Args:
        amount: Amount to format
        currency: Currency code (ISO 4217), defaults to the base currency
        locale: Locale for formatting, defaults to the configured locale

    Returns:
        Formatted currency string (e.g., "1.234,56 €")
    """
    return babel_format_currency(
        to_decimal(amount),
        currency or settings.base_currency,
        locale=locale or settings.locale,
    )
