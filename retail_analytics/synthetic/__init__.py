"""Sample data generation and validation utilities.

This package produces realistic-but-fake stores, customers and receipts to
exercise the aggregators in tests and notebooks. Production code paths
never import it.
"""

from .generator import (
    DEFAULT_CATEGORIES,
    ScenarioConfig,
    generate_customers,
    generate_receipts,
    generate_stores,
)
from .validation import (
    ValidationResult,
    check_identified_share,
    check_no_duplicate_receipts,
    check_status_mix,
    check_totals_match_line_items,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "ScenarioConfig",
    "generate_customers",
    "generate_receipts",
    "generate_stores",
    "ValidationResult",
    "check_identified_share",
    "check_no_duplicate_receipts",
    "check_status_mix",
    "check_totals_match_line_items",
]
