"""Decimal-safe monetary arithmetic shared by every aggregator.

All amounts flowing through the aggregation core are :class:`~decimal.Decimal`
instances. Binary floating point is only accepted at the ingestion boundary
and converted through ``str()`` so that ``0.1`` becomes ``Decimal("0.1")``
rather than ``Decimal(0.1000000000000000055...)``.

Every ratio computed here follows the same zero-guard convention: when the
denominator is zero the result is exactly ``Decimal("0")``. Callers never see
``NaN``, ``Infinity`` or :class:`ZeroDivisionError`.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

# Standard presentation precision for money and percentages (e.g. 45.67)
CENT = Decimal("0.01")
PERCENTAGE_PRECISION = Decimal("0.01")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

Amount = Union[Decimal, int, float, str]


class InvalidAmountError(ValueError):
    """Raised when a value cannot be interpreted as a finite monetary amount."""


def to_decimal(value: Amount) -> Decimal:
    """Convert ``value`` to a finite Decimal.

    Floats are converted through their shortest string representation.
    Booleans, ``None``, non-numeric strings, ``NaN`` and infinities are
    rejected.

    >>> to_decimal("12.50")
    Decimal('12.50')
    >>> to_decimal(0.1)
    Decimal('0.1')
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Expected a numeric amount, got {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Not a numeric amount: {value!r}") from exc
    else:
        raise InvalidAmountError(
            f"Unsupported amount type {type(value).__name__}: {value!r}"
        )

    if not result.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    return result


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Return the exact sum of ``amounts`` (``Decimal("0")`` when empty)."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total


def safe_divide(numerator: Decimal | int, denominator: Decimal | int) -> Decimal:
    """Divide, returning ``Decimal("0")`` when the denominator is zero."""
    if denominator == 0:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def average(total: Decimal | int, count: Decimal | int) -> Decimal:
    """Average amount quantised to the cent; ``0`` when ``count == 0``."""
    return quantize_money(safe_divide(total, count))


def percentage(part: Decimal | int, whole: Decimal | int) -> Decimal:
    """Return ``part / whole * 100`` rounded to 0.01, or ``0`` if whole is 0.

    >>> percentage(7, 10)
    Decimal('70.00')
    >>> percentage(3, 0)
    Decimal('0')
    """
    if whole == 0:
        return ZERO
    return (Decimal(part) / Decimal(whole) * HUNDRED).quantize(
        PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP
    )


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary value to the cent using ROUND_HALF_UP."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
