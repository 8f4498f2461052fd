"""Pandas DataFrame adapters for receipts and line items."""

from typing import Any, Dict, List, Sequence

import pandas as pd  # type: ignore

from retail_analytics.foundation.records import Receipt, coerce_receipt
from ._utils import decimal_to_float, float_to_decimal, optional_str

RECEIPT_COLUMNS = [
    "receipt_id",
    "store_id",
    "store_name",
    "customer_id",
    "total",
    "status",
    "created_at",
    "category",
    "product_name",
    "quantity",
    "unit_price",
]

REQUIRED_COLUMNS = ["receipt_id", "store_id", "total", "status", "created_at"]


def receipts_to_dataframe(receipts: Sequence[Receipt]) -> pd.DataFrame:
    """Flatten receipts to one row per line item.

    Receipt-level columns are repeated on each of its lines. A receipt
    without line items yields a single row whose line columns are empty.

    Args:
        receipts: Sequence of Receipt objects

    Returns:
        DataFrame with columns: receipt_id, store_id, store_name,
        customer_id, total, status, created_at, category, product_name,
        quantity, unit_price

    Example:
        >>> df = receipts_to_dataframe(receipts)
        >>> df.groupby("category")["unit_price"].sum()
    """
    if not receipts:
        return pd.DataFrame(columns=RECEIPT_COLUMNS)

    rows: List[Dict[str, Any]] = []
    for receipt in receipts:
        header = {
            "receipt_id": receipt.receipt_id,
            "store_id": receipt.store.store_id,
            "store_name": receipt.store.name,
            "customer_id": receipt.customer_id,
            "total": decimal_to_float(receipt.total),
            "status": receipt.status.value,
            "created_at": receipt.created_at,
        }
        if not receipt.line_items:
            rows.append(
                {
                    **header,
                    "category": None,
                    "product_name": None,
                    "quantity": None,
                    "unit_price": None,
                }
            )
            continue
        for item in receipt.line_items:
            rows.append(
                {
                    **header,
                    "category": item.category.label,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": decimal_to_float(item.unit_price),
                }
            )

    return pd.DataFrame(rows, columns=RECEIPT_COLUMNS)


def dataframe_to_receipts(receipts_df: pd.DataFrame) -> List[Receipt]:
    """Rebuild receipts from a line-level DataFrame.

    Rows are grouped by ``receipt_id``; receipt-level fields are read from
    the first row of each group. Rows with an empty ``unit_price`` carry no
    line item.

    Args:
        receipts_df: DataFrame shaped like :func:`receipts_to_dataframe` output.
            ``store_name``, ``customer_id``, ``category``, ``product_name``,
            ``quantity`` and ``unit_price`` are optional.

    Returns:
        List of Receipt objects in first-appearance order.

    Raises:
        ValueError: If required columns are missing, contain nulls, or a
            row cannot be turned into a receipt.
    """
    missing_cols = set(REQUIRED_COLUMNS) - set(receipts_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if receipts_df.empty:
        return []

    null_cols = receipts_df[REQUIRED_COLUMNS].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "Receipts require complete header data."
        )

    receipts = []
    for receipt_id, group in receipts_df.groupby("receipt_id", sort=False):
        records = group.to_dict("records")
        first = records[0]
        line_items = [
            {
                "category": optional_str(record.get("category")),
                "product_name": optional_str(record.get("product_name")) or "",
                "quantity": int(record.get("quantity", 1)),
                "unit_price": float_to_decimal(record["unit_price"]),
            }
            for record in records
            if optional_str(record.get("unit_price")) is not None
        ]
        raw = {
            "receipt_id": str(receipt_id),
            "store_id": str(first["store_id"]),
            "store_name": optional_str(first.get("store_name")),
            "customer_id": optional_str(first.get("customer_id")),
            "total": float_to_decimal(first["total"]),
            "status": str(first["status"]),
            "created_at": pd.to_datetime(first["created_at"]).to_pydatetime(),
            "line_items": line_items,
        }
        receipts.append(coerce_receipt(raw))

    return receipts
