"""Dashboard analyses over a window of receipts.

1. Overview - headline KPIs with trends against the previous window
2. Dimensions - store and category performance
3. Segments - rule-based behavioural customer segments
4. Environment - paper and CO2 saved by digital receipts
"""

from .overview import (
    IdentificationBreakdown,
    OverviewMetrics,
    OverviewTrends,
    compute_identification_breakdown,
    compute_overview,
    compute_trend,
)
from .dimensions import (
    CategoryEngagement,
    DimensionMetrics,
    aggregate_by_category,
    aggregate_by_dimension,
    aggregate_by_store,
    analyze_category_engagement,
)
from .segments import (
    Segment,
    SegmentationResult,
    SegmentationRules,
    SegmentationStatus,
    SegmentSummary,
    segment_customers,
)
from .environment import (
    EnvironmentalImpact,
    estimate_environmental_impact,
    estimate_from_count,
    project_environmental_impact,
)

__all__ = [
    # Overview
    "IdentificationBreakdown",
    "OverviewMetrics",
    "OverviewTrends",
    "compute_identification_breakdown",
    "compute_overview",
    "compute_trend",
    # Dimensions
    "CategoryEngagement",
    "DimensionMetrics",
    "aggregate_by_category",
    "aggregate_by_dimension",
    "aggregate_by_store",
    "analyze_category_engagement",
    # Segments
    "Segment",
    "SegmentationResult",
    "SegmentationRules",
    "SegmentationStatus",
    "SegmentSummary",
    "segment_customers",
    # Environment
    "EnvironmentalImpact",
    "estimate_environmental_impact",
    "estimate_from_count",
    "project_environmental_impact",
]
