"""Shared utilities for pandas conversion operations."""

from decimal import Decimal
from typing import Any, Optional

import pandas as pd  # type: ignore


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def float_to_decimal(value: Any) -> Decimal:
    """Convert a DataFrame cell to Decimal, going through ``str()``.

    Warning:
        Floats with >15 significant digits may lose precision due to
        float representation limits. Keep amounts as Decimal outside of
        DataFrames when exact cents matter.

    Raises:
        TypeError: If value is not numeric

    Example:
        >>> float_to_decimal(123.45)
        Decimal('123.45')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Expected numeric type, got {type(value)}")
    return Decimal(str(value))


def optional_str(value: Any) -> Optional[str]:
    """Return ``str(value)``, or None for missing cells (None, NaN, NaT)."""
    if value is None or pd.isna(value):
        return None
    return str(value)
