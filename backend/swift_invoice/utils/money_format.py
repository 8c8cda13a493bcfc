"""Display formatting for monetary values.

Totals are kept at full float precision internally; these helpers are the only
place values get rounded, and only for display.

Examples:
>>> format_amount(255)
'255.00'
>>> format_amount(0.125)
'0.13'
>>> format_money(1234.5, "EUR")
'€1234.50'
>>> format_money(-10, "XYZ")
'XYZ -10.00'
"""
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

__all__ = ["CURRENCY_SYMBOLS", "currency_symbol", "format_amount", "format_money"]

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "C$",
    "SGD": "S$",
}


def currency_symbol(code: str | None) -> str:
    """Return the display symbol for a currency code, or the code itself when unknown."""
    if not code:
        return ""
    code = code.upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_amount(value: Number | None) -> str:
    """Format a number with exactly two decimals, rounding HALF_UP.

    None is treated as 0 so partially filled drafts still display.
    """
    dec = Decimal(str(value or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    return f"{dec:.2f}"


def format_money(value: Number | None, currency: str | None) -> str:
    """Format an amount prefixed by its currency symbol.

    Unknown currency codes are shown as a code prefix separated by a space.
    """
    amount = format_amount(value)
    symbol = currency_symbol(currency)
    if not symbol:
        return amount
    if symbol == (currency or "").upper():
        return f"{symbol} {amount}"
    return f"{symbol}{amount}"
