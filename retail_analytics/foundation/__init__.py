"""Foundational building blocks shared by every aggregator.

This package exposes the receipt data model and its ingestion, Decimal
money helpers, trailing time windows and local-day bucketing.
"""

from .money import (
    InvalidAmountError,
    average,
    percentage,
    quantize_money,
    safe_divide,
    sum_amounts,
    to_decimal,
)
from .records import (
    Category,
    Customer,
    IngestionResult,
    LineItem,
    MalformedRecordError,
    Receipt,
    ReceiptStatus,
    SkippedRecord,
    Store,
    coerce_receipt,
    coerce_receipts,
)
from .windows import TimeWindow, filter_window, trailing_window
from .daily import DailyPoint, bucket_by_day

__all__ = [
    # Money
    "InvalidAmountError",
    "average",
    "percentage",
    "quantize_money",
    "safe_divide",
    "sum_amounts",
    "to_decimal",
    # Records
    "Category",
    "Customer",
    "IngestionResult",
    "LineItem",
    "MalformedRecordError",
    "Receipt",
    "ReceiptStatus",
    "SkippedRecord",
    "Store",
    "coerce_receipt",
    "coerce_receipts",
    # Windows
    "TimeWindow",
    "filter_window",
    "trailing_window",
    # Daily series
    "DailyPoint",
    "bucket_by_day",
]
