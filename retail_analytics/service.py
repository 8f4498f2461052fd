"""Dashboard service: the boundary between the data layer and the aggregators.

The service owns two collaborators supplied by the host application:

- ``fetch_receipts(window_start, window_end, filter=None)`` returns fully
  materialised receipts (or raw mappings) for a time range;
- ``fetch_loyalty_program()`` returns the deployment's loyalty program, or
  ``None`` when it has not been set up yet.

Collaborator failures never escape: they are logged and turned into a
result whose ``status`` is ``UNAVAILABLE`` with a ``reason``. An empty window
yields ``NO_DATA``. Callers render an empty state for both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol

import structlog

from retail_analytics.analyses.dimensions import (
    DimensionMetrics,
    aggregate_by_category,
    aggregate_by_store,
)
from retail_analytics.analyses.environment import (
    EnvironmentalImpact,
    estimate_environmental_impact,
)
from retail_analytics.analyses.overview import (
    IdentificationBreakdown,
    OverviewMetrics,
    compute_identification_breakdown,
    compute_overview,
)
from retail_analytics.analyses.segments import SegmentationResult, segment_customers
from retail_analytics.config import AnalyticsConfig
from retail_analytics.foundation.daily import DailyPoint, bucket_by_day
from retail_analytics.foundation.records import Receipt, coerce_receipts
from retail_analytics.foundation.windows import filter_window, trailing_window, utc_now
from retail_analytics.loyalty.calculator import LoyaltyStats, compute_loyalty_stats
from retail_analytics.loyalty.program import LoyaltyProgram
from retail_analytics.loyalty.simulation import (
    SimulationRequest,
    SimulationResult,
    simulate,
)

logger = structlog.get_logger(__name__)


class ReceiptFetcher(Protocol):
    def __call__(
        self,
        window_start: datetime,
        window_end: datetime,
        filter: Mapping[str, Any] | None = None,
    ) -> Iterable[Receipt | Mapping[str, Any]]:
        ...


class ProgramFetcher(Protocol):
    def __call__(self) -> LoyaltyProgram | None:
        ...


class DataStatus(str, Enum):
    OK = "ok"
    NO_DATA = "no_data"
    UNAVAILABLE = "unavailable"


class DataUnavailableError(RuntimeError):
    """A collaborator failed; ``reason`` is safe to show to the user."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class AnalyticsDashboard:
    """Everything the analytics overview page displays."""

    status: DataStatus
    reason: str | None = None
    overview: OverviewMetrics = field(default_factory=OverviewMetrics.empty)
    daily: tuple[DailyPoint, ...] = ()
    stores: tuple[DimensionMetrics, ...] = ()
    categories: tuple[DimensionMetrics, ...] = ()
    identification: IdentificationBreakdown | None = None
    environment: EnvironmentalImpact | None = None
    skipped_records: int = 0

    @property
    def has_data(self) -> bool:
        return self.status is DataStatus.OK

    def as_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "overview": self.overview.as_dict(),
            "daily": [point.as_dict() for point in self.daily],
            "stores": [metrics.as_dict() for metrics in self.stores],
            "categories": [metrics.as_dict() for metrics in self.categories],
            "identification": (
                self.identification.as_dict() if self.identification else None
            ),
            "environment": self.environment.as_dict() if self.environment else None,
            "skipped_records": self.skipped_records,
        }


@dataclass(frozen=True)
class LoyaltyDashboard:
    """Loyalty statistics, or a simulation outcome, with a data status."""

    status: DataStatus
    reason: str | None = None
    stats: LoyaltyStats | None = None
    simulation: SimulationResult | None = None

    @property
    def has_data(self) -> bool:
        return self.status is DataStatus.OK

    def as_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "stats": self.stats.as_dict() if self.stats else None,
            "simulation": self.simulation.as_dict() if self.simulation else None,
        }


class DashboardService:
    """Compute dashboard payloads from the injected data-layer collaborators.

    Args:
        fetch_receipts: Receipt source for a time range.
        fetch_loyalty_program: Loyalty program source. Loyalty endpoints
            report ``NO_DATA`` when it is not supplied.
        config: Window lengths, time zone and ingestion settings.
    """

    def __init__(
        self,
        fetch_receipts: ReceiptFetcher,
        fetch_loyalty_program: ProgramFetcher | None = None,
        config: AnalyticsConfig | None = None,
    ):
        self._fetch_receipts = fetch_receipts
        self._fetch_loyalty_program = fetch_loyalty_program
        self.config = config if config is not None else AnalyticsConfig()

    def _load_receipts(
        self,
        start: datetime,
        end: datetime,
        filter: Mapping[str, Any] | None = None,
    ) -> tuple[list[Receipt], int]:
        try:
            records = list(self._fetch_receipts(start, end, filter))
        except Exception as e:
            logger.error(
                "receipt_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
                window_start=start.isoformat(),
                window_end=end.isoformat(),
            )
            raise DataUnavailableError("Receipts could not be loaded") from e

        result = coerce_receipts(
            records,
            total_tolerance=self.config.total_tolerance,
            reject_inconsistent=self.config.reject_inconsistent_receipts,
        )
        if result.skipped_count:
            logger.warning(
                "receipts_skipped",
                skipped=result.skipped_count,
                accepted=len(result.receipts),
            )
        return result.receipts, result.skipped_count

    def _load_program(self) -> LoyaltyProgram | None:
        if self._fetch_loyalty_program is None:
            return None
        try:
            return self._fetch_loyalty_program()
        except Exception as e:
            logger.error(
                "loyalty_program_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DataUnavailableError("Loyalty program could not be loaded") from e

    def overview(
        self,
        now: datetime | None = None,
        filter: Mapping[str, Any] | None = None,
    ) -> AnalyticsDashboard:
        """Overview KPIs, daily series, store and category tables.

        Fetches twice the overview window so that trends can compare the
        current window with the previous one. The environmental estimate
        uses its own, longer window; if only that fetch fails the rest of
        the dashboard is still returned.
        """
        reference = now if now is not None else utc_now()
        cfg = self.config
        window = trailing_window(cfg.overview_window_days, reference)

        try:
            receipts, skipped = self._load_receipts(
                window.previous().start, window.end, filter
            )
        except DataUnavailableError as e:
            return AnalyticsDashboard(status=DataStatus.UNAVAILABLE, reason=e.reason)

        overview = compute_overview(
            receipts, cfg.overview_window_days, now=reference
        )
        if not overview.has_data:
            logger.info("overview_no_data", window_days=cfg.overview_window_days)
            return AnalyticsDashboard(
                status=DataStatus.NO_DATA,
                reason="No receipts in the selected period",
                skipped_records=skipped,
            )

        current = filter_window(receipts, window)
        environment = self._environment(reference, filter)

        logger.info(
            "overview_computed",
            receipts=overview.total_receipts,
            skipped=skipped,
        )
        return AnalyticsDashboard(
            status=DataStatus.OK,
            overview=overview,
            daily=tuple(bucket_by_day(current, cfg.zone)),
            stores=tuple(aggregate_by_store(current)),
            categories=tuple(aggregate_by_category(current, cfg.category_limit)),
            identification=compute_identification_breakdown(current),
            environment=environment,
            skipped_records=skipped,
        )

    def _environment(
        self, now: datetime, filter: Mapping[str, Any] | None
    ) -> EnvironmentalImpact | None:
        days = self.config.environment_window_days
        try:
            receipts, _ = self._load_receipts(now - timedelta(days=days), now, filter)
        except DataUnavailableError:
            return None
        return estimate_environmental_impact(receipts, now=now, window_days=days)

    def segments(
        self,
        now: datetime | None = None,
        filter: Mapping[str, Any] | None = None,
    ) -> SegmentationResult:
        reference = now if now is not None else utc_now()
        window = trailing_window(self.config.segmentation_window_days, reference)
        try:
            receipts, _ = self._load_receipts(window.start, window.end, filter)
        except DataUnavailableError as e:
            return SegmentationResult.unavailable(e.reason)

        result = segment_customers(
            filter_window(receipts, window), now=reference
        )
        logger.info(
            "segmentation_computed",
            status=result.status.value,
            segments=len(result.segments),
        )
        return result

    def loyalty_stats(self, now: datetime | None = None) -> LoyaltyDashboard:
        reference = now if now is not None else utc_now()
        window = trailing_window(self.config.loyalty_revenue_window_days, reference)
        try:
            program = self._load_program()
            if program is None:
                return LoyaltyDashboard(
                    status=DataStatus.NO_DATA,
                    reason="No loyalty program configured",
                )
            receipts, _ = self._load_receipts(window.start, window.end)
        except DataUnavailableError as e:
            return LoyaltyDashboard(status=DataStatus.UNAVAILABLE, reason=e.reason)

        stats = compute_loyalty_stats(
            program,
            receipts,
            now=reference,
            engagement_window_days=self.config.engagement_window_days,
            revenue_window_days=self.config.loyalty_revenue_window_days,
        )
        return LoyaltyDashboard(status=DataStatus.OK, stats=stats)

    def simulate(
        self, request: SimulationRequest, now: datetime | None = None
    ) -> LoyaltyDashboard:
        """Run a what-if simulation against the current program."""
        reference = now if now is not None else utc_now()
        window = trailing_window(self.config.loyalty_revenue_window_days, reference)
        try:
            program = self._load_program()
            if program is None:
                return LoyaltyDashboard(
                    status=DataStatus.NO_DATA,
                    reason="No loyalty program configured",
                )
            receipts: list[Receipt] = []
            if request.bonus_category:
                receipts, _ = self._load_receipts(window.start, window.end)
        except DataUnavailableError as e:
            return LoyaltyDashboard(status=DataStatus.UNAVAILABLE, reason=e.reason)

        result = simulate(program, request, receipts=receipts)
        logger.info(
            "simulation_computed",
            points_change_pct=float(request.points_per_unit_change_pct),
            bonus_category=request.bonus_category,
            incremental_points=result.incremental_points,
        )
        return LoyaltyDashboard(status=DataStatus.OK, simulation=result)
