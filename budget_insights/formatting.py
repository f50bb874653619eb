"""Currency and rate text used in suggestion and recommendation messages."""

from __future__ import annotations

from typing import Union

Number = Union[float, int]


def format_currency(amount: Number, include_sign: bool = True) -> str:
    """Two-decimal amount with thousands separators.

    The minus sign goes before the dollar sign.

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-50)
        '-$50.00'
        >>> format_currency(75, include_sign=False)
        '75.00'
    """
    sign = '-' if amount < 0 else ''
    symbol = '$' if include_sign else ''
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_percent(rate: float) -> str:
    """Whole-number percentage of a 0-1 rate, e.g. ``0.256`` -> ``'26%'``."""
    return f"{round(rate * 100)}%"
