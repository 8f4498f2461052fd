"""Pandas DataFrame adapters for dashboard metrics."""

from typing import Optional, Sequence

import pandas as pd  # type: ignore

from retail_analytics.analyses.dimensions import (
    DEFAULT_CATEGORY_LIMIT,
    DimensionMetrics,
    aggregate_by_category,
    aggregate_by_store,
)
from retail_analytics.analyses.segments import SegmentationResult
from retail_analytics.foundation.daily import DEFAULT_TIMEZONE, DailyPoint, bucket_by_day
from .receipts import dataframe_to_receipts
from ._utils import decimal_to_float

DAILY_COLUMNS = [
    "date",
    "ticket_count",
    "revenue",
    "identified_count",
    "identification_rate",
]

DIMENSION_COLUMNS = [
    "key",
    "display_name",
    "revenue",
    "ticket_count",
    "average_basket",
    "identification_rate",
    "digital_rate",
]

SEGMENT_COLUMNS = [
    "slug",
    "name",
    "size",
    "revenue",
    "average_basket",
    "average_days_between_visits",
    "identification_rate",
]


def daily_series_to_dataframe(points: Sequence[DailyPoint]) -> pd.DataFrame:
    """Convert a daily series to a DataFrame, one row per active day.

    The ``date`` column keeps the ISO strings; days without receipts are
    absent, as in the series itself.

    Example:
        >>> df = daily_series_to_dataframe(bucket_by_day(receipts))
        >>> df.set_index("date")["revenue"].plot()
    """
    if not points:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    return pd.DataFrame(
        [
            {
                "date": p.date,
                "ticket_count": p.ticket_count,
                "revenue": decimal_to_float(p.revenue),
                "identified_count": p.identified_count,
                "identification_rate": decimal_to_float(p.identification_rate),
            }
            for p in points
        ],
        columns=DAILY_COLUMNS,
    )


def dimension_metrics_to_dataframe(metrics: Sequence[DimensionMetrics]) -> pd.DataFrame:
    """Convert store or category metrics to a DataFrame, keeping their order."""
    if not metrics:
        return pd.DataFrame(columns=DIMENSION_COLUMNS)
    return pd.DataFrame(
        [
            {
                "key": m.key,
                "display_name": m.display_name,
                "revenue": decimal_to_float(m.revenue),
                "ticket_count": m.ticket_count,
                "average_basket": decimal_to_float(m.average_basket),
                "identification_rate": decimal_to_float(m.identification_rate),
                "digital_rate": decimal_to_float(m.digital_rate),
            }
            for m in metrics
        ],
        columns=DIMENSION_COLUMNS,
    )


def segments_to_dataframe(result: SegmentationResult) -> pd.DataFrame:
    """One row per non-empty segment; empty frame when there are none.

    Member ids are not included; a customer in several segments would
    otherwise be repeated across rows.
    """
    if not result.segments:
        return pd.DataFrame(columns=SEGMENT_COLUMNS)
    return pd.DataFrame(
        [
            {
                "slug": s.segment.value,
                "name": s.segment.display_name,
                "size": s.size,
                "revenue": decimal_to_float(s.revenue),
                "average_basket": decimal_to_float(s.average_basket),
                "average_days_between_visits": decimal_to_float(
                    s.average_days_between_visits
                ),
                "identification_rate": decimal_to_float(s.identification_rate),
            }
            for s in result.segments
        ],
        columns=SEGMENT_COLUMNS,
    )


def bucket_by_day_df(
    receipts_df: pd.DataFrame, tz: str = DEFAULT_TIMEZONE
) -> pd.DataFrame:
    """Daily series from a line-level receipts DataFrame.

    Convenience function combining conversion and bucketing.

    Example:
        >>> daily_df = bucket_by_day_df(receipts_df)
        >>> daily_df.to_csv('daily.csv', index=False)
    """
    return daily_series_to_dataframe(bucket_by_day(dataframe_to_receipts(receipts_df), tz))


def aggregate_by_store_df(receipts_df: pd.DataFrame) -> pd.DataFrame:
    return dimension_metrics_to_dataframe(
        aggregate_by_store(dataframe_to_receipts(receipts_df))
    )


def aggregate_by_category_df(
    receipts_df: pd.DataFrame,
    limit: Optional[int] = DEFAULT_CATEGORY_LIMIT,
    include_other: bool = True,
) -> pd.DataFrame:
    """Category table from a line-level receipts DataFrame.

    Args:
        receipts_df: DataFrame shaped like ``receipts_to_dataframe`` output
        limit: Number of categories kept; None keeps all
        include_other: Merge the remaining categories into "Autres"
    """
    receipts = dataframe_to_receipts(receipts_df)
    return dimension_metrics_to_dataframe(
        aggregate_by_category(receipts, limit, include_other=include_other)
    )
