"""
Money utilities for cart pricing.

All cart amounts are Decimal; floats only appear at serialization edges.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal, None]

MONEY_PRECISION = Decimal("0.01")
INTEGER_PRECISION = Decimal("1")

ZERO = Decimal("0.00")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "VND": "₫",
}

# Currencies without minor units
INTEGER_CURRENCIES = {"JPY", "VND"}


def to_decimal(value: Number) -> Decimal:
    """
    Convert any value to Decimal safely.

    Floats go through str() so 0.1 stays 0.1. None and unparsable input
    become Decimal("0").
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def round_money(value: Number, to_int: bool = False) -> Decimal:
    """Round to cents (or whole units when to_int is set), half-up."""
    precision = INTEGER_PRECISION if to_int else MONEY_PRECISION
    return to_decimal(value).quantize(precision, rounding=ROUND_HALF_UP)


def add(a: Number, b: Number) -> Decimal:
    return to_decimal(a) + to_decimal(b)


def subtract(a: Number, b: Number) -> Decimal:
    return to_decimal(a) - to_decimal(b)


def multiply(value: Number, factor: Number) -> Decimal:
    return to_decimal(value) * to_decimal(factor)


def percent(value: Number, percent_value: Number) -> Decimal:
    """Calculate percent_value% of value."""
    return multiply(value, to_decimal(percent_value) / Decimal("100"))


def money_sum(values) -> Decimal:
    """Sum an iterable of amounts, starting from a rounded zero."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def format_money(value: Number, currency: str = "USD") -> str:
    """
    Format an amount with its currency symbol.

    Examples:
        format_money(Decimal("50"), "USD") -> "$50.00"
        format_money(Decimal("1500"), "JPY") -> "1,500 ¥"
    """
    decimal_value = to_decimal(value)
    symbol = CURRENCY_SYMBOLS.get(currency, currency)

    if currency in INTEGER_CURRENCIES:
        formatted = f"{int(round_money(decimal_value, to_int=True)):,}"
    else:
        formatted = f"{round_money(decimal_value):,.2f}"

    if currency in ("USD", "EUR", "GBP"):
        return f"{symbol}{formatted}"
    return f"{formatted} {symbol}"


def to_float(value: Number) -> float:
    """Convert to float for JSON payloads. Never use for arithmetic."""
    return float(to_decimal(value))
