from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from retail_analytics.foundation.records import Receipt, ReceiptStatus


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    message: str = ""


def check_totals_match_line_items(receipts: Sequence[Receipt]) -> ValidationResult:
    for idx, r in enumerate(receipts):
        if r.line_items and r.total != r.line_items_total:
            return ValidationResult(
                False,
                f"total {r.total} != line items {r.line_items_total} at index {idx}",
            )
    return ValidationResult(True, "totals match line items")


def check_no_duplicate_receipts(receipts: Sequence[Receipt]) -> ValidationResult:
    counts = Counter(r.receipt_id for r in receipts)
    duplicates = sorted(rid for rid, n in counts.items() if n > 1)
    if duplicates:
        return ValidationResult(False, f"duplicate receipt ids: {duplicates[:5]}")
    return ValidationResult(True, "receipt ids are unique")


def check_identified_share(
    receipts: Sequence[Receipt], expected: float, *, tolerance: float = 0.1
) -> ValidationResult:
    if not receipts:
        return ValidationResult(False, "no receipts to assess identification")
    share = sum(1 for r in receipts if r.is_identified) / len(receipts)
    if abs(share - expected) > tolerance:
        return ValidationResult(
            False, f"identified share {share:.2f} outside {expected} +/- {tolerance}"
        )
    return ValidationResult(True, f"identified share ok: {share:.2f}")


def check_status_mix(
    receipts: Sequence[Receipt], *, min_issued_share: float = 0.5
) -> ValidationResult:
    """Issued receipts should dominate and claimed ones should be present."""
    if not receipts:
        return ValidationResult(False, "no receipts to assess status mix")
    counts = Counter(r.status for r in receipts)
    issued = counts[ReceiptStatus.ISSUED] / len(receipts)
    if issued < min_issued_share:
        return ValidationResult(
            False, f"issued share too low: {issued:.2f} < {min_issued_share}"
        )
    if counts[ReceiptStatus.CLAIMED] == 0:
        return ValidationResult(False, "no claimed receipts generated")
    return ValidationResult(True, f"issued share ok: {issued:.2f}")
