"""Pandas DataFrame adapters for the aggregation core."""

from .receipts import (
    receipts_to_dataframe,
    dataframe_to_receipts,
)
from .metrics import (
    daily_series_to_dataframe,
    dimension_metrics_to_dataframe,
    segments_to_dataframe,
    bucket_by_day_df,
    aggregate_by_store_df,
    aggregate_by_category_df,
)

__all__ = [
    # Receipt adapters
    "receipts_to_dataframe",
    "dataframe_to_receipts",
    # Metric adapters
    "daily_series_to_dataframe",
    "dimension_metrics_to_dataframe",
    "segments_to_dataframe",
    "bucket_by_day_df",
    "aggregate_by_store_df",
    "aggregate_by_category_df",
]
