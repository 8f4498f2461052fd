"""Overview KPIs for a trailing window, with trends against the prior window.

The overview answers the questions at the top of the dashboard:
- How many receipts and how much revenue did the stores issue?
- What is the average basket?
- How many distinct customers were active?
- Which share of receipts is linked to a known customer (identification
  rate) and which share was retrieved digitally (digital rate)?

Trends compare the window ``[now - W, now]`` to the immediately preceding
window ``[now - 2W, now - W)`` of the same length.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from retail_analytics.foundation.money import (
    HUNDRED,
    PERCENTAGE_PRECISION,
    ZERO,
    average,
    percentage,
    safe_divide,
    sum_amounts,
)
from retail_analytics.foundation.records import Receipt
from retail_analytics.foundation.windows import filter_window, trailing_window

DEFAULT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class PeriodSummary:
    """Raw counts and sums for one set of receipts."""

    total_receipts: int
    total_revenue: Decimal
    identified_receipts: int
    digital_receipts: int
    active_customers: int

    @property
    def average_basket(self) -> Decimal:
        return average(self.total_revenue, self.total_receipts)

    @property
    def identification_rate(self) -> Decimal:
        return percentage(self.identified_receipts, self.total_receipts)

    @property
    def digital_rate(self) -> Decimal:
        return percentage(self.digital_receipts, self.total_receipts)

    @property
    def average_frequency(self) -> Decimal:
        """Identified receipts per active customer."""
        return safe_divide(self.identified_receipts, self.active_customers).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )


@dataclass(frozen=True)
class OverviewTrends:
    """Change versus the previous window of equal length.

    ``identification`` is a difference in percentage points; every other
    field is a relative change in percent.
    """

    receipts: Decimal
    revenue: Decimal
    basket: Decimal
    customers: Decimal
    identification: Decimal
    frequency: Decimal

    def as_dict(self) -> dict[str, float]:
        return {
            "receipts_trend": float(self.receipts),
            "revenue_trend": float(self.revenue),
            "basket_trend": float(self.basket),
            "customers_trend": float(self.customers),
            "identification_trend": float(self.identification),
            "frequency_trend": float(self.frequency),
        }


@dataclass(frozen=True)
class OverviewMetrics:
    """Headline KPIs for the current window.

    ``has_data`` is ``False`` when the window held no receipts, which lets
    callers render an empty state rather than a chart of zeros.
    """

    has_data: bool
    total_receipts: int
    total_revenue: Decimal
    average_basket: Decimal
    active_customers: int
    identification_rate: Decimal
    digital_rate: Decimal
    average_frequency: Decimal = ZERO
    trends: OverviewTrends | None = None

    def __post_init__(self) -> None:
        if self.total_receipts < 0:
            raise ValueError(
                f"Total receipts cannot be negative: {self.total_receipts}"
            )
        if self.active_customers > self.total_receipts:
            raise ValueError(
                f"Active customers ({self.active_customers}) cannot exceed "
                f"total receipts ({self.total_receipts})"
            )
        if not 0 <= self.identification_rate <= 100:
            raise ValueError(
                f"Identification rate must be 0-100: {self.identification_rate}"
            )
        if not 0 <= self.digital_rate <= 100:
            raise ValueError(f"Digital rate must be 0-100: {self.digital_rate}")

    @classmethod
    def empty(cls) -> "OverviewMetrics":
        return cls(
            has_data=False,
            total_receipts=0,
            total_revenue=ZERO,
            average_basket=ZERO,
            active_customers=0,
            identification_rate=ZERO,
            digital_rate=ZERO,
        )

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "has_data": self.has_data,
            "total_receipts": self.total_receipts,
            "total_revenue": float(self.total_revenue),
            "average_basket": float(self.average_basket),
            "active_customers": self.active_customers,
            "identification_rate": float(self.identification_rate),
            "digital_rate": float(self.digital_rate),
            "average_frequency": float(self.average_frequency),
        }
        if self.trends is not None:
            payload["trends"] = self.trends.as_dict()
        return payload


@dataclass(frozen=True)
class IdentificationBreakdown:
    """How identified and anonymous receipts compare.

    Attributes
    ----------
    identified_revenue_share:
        Percentage of revenue carried by identified receipts.
    identified_average_basket:
        Average total of receipts linked to a customer.
    unidentified_average_basket:
        Average total of anonymous receipts.
    identified_frequency:
        Identified receipts per distinct customer.
    """

    identified_revenue_share: Decimal
    identified_average_basket: Decimal
    unidentified_average_basket: Decimal
    identified_frequency: Decimal

    def as_dict(self) -> dict[str, float]:
        return {
            "identified_revenue_share": float(self.identified_revenue_share),
            "identified_average_basket": float(self.identified_average_basket),
            "unidentified_average_basket": float(self.unidentified_average_basket),
            "identified_frequency": float(self.identified_frequency),
        }


def summarise_receipts(receipts: Iterable[Receipt]) -> PeriodSummary:
    total_receipts = 0
    identified = 0
    digital = 0
    customers: set[str] = set()
    amounts: list[Decimal] = []

    for receipt in receipts:
        total_receipts += 1
        amounts.append(receipt.total)
        if receipt.is_identified:
            identified += 1
            customers.add(receipt.customer_id)
        if receipt.is_digital:
            digital += 1

    return PeriodSummary(
        total_receipts=total_receipts,
        total_revenue=sum_amounts(amounts),
        identified_receipts=identified,
        digital_receipts=digital,
        active_customers=len(customers),
    )


def compute_trend(current: Decimal | int, previous: Decimal | int) -> Decimal:
    """Signed percentage change from ``previous`` to ``current``.

    Returns ``0`` when ``previous`` is zero instead of an infinite change.

    >>> compute_trend(110, 100)
    Decimal('10.00')
    >>> compute_trend(50, 0)
    Decimal('0')
    """
    if previous == 0:
        return ZERO
    change = (Decimal(current) - Decimal(previous)) / Decimal(previous) * HUNDRED
    return change.quantize(PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP)


def compare_periods(current: PeriodSummary, previous: PeriodSummary) -> OverviewTrends:
    if previous.identification_rate > 0:
        identification = current.identification_rate - previous.identification_rate
    else:
        identification = ZERO

    return OverviewTrends(
        receipts=compute_trend(current.total_receipts, previous.total_receipts),
        revenue=compute_trend(current.total_revenue, previous.total_revenue),
        basket=compute_trend(current.average_basket, previous.average_basket),
        customers=compute_trend(current.active_customers, previous.active_customers),
        identification=identification,
        frequency=compute_trend(current.average_frequency, previous.average_frequency),
    )


def overview_from_summaries(
    current: PeriodSummary, previous: PeriodSummary | None = None
) -> OverviewMetrics:
    """Build :class:`OverviewMetrics` from already-windowed summaries."""
    if current.total_receipts == 0:
        return OverviewMetrics.empty()

    return OverviewMetrics(
        has_data=True,
        total_receipts=current.total_receipts,
        total_revenue=current.total_revenue,
        average_basket=current.average_basket,
        active_customers=current.active_customers,
        identification_rate=current.identification_rate,
        digital_rate=current.digital_rate,
        average_frequency=current.average_frequency,
        trends=compare_periods(current, previous) if previous is not None else None,
    )


def compute_overview(
    receipts: Sequence[Receipt],
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    now: datetime | None = None,
) -> OverviewMetrics:
    """Compute overview KPIs for the last ``window_days`` days.

    ``receipts`` should cover both the current window and the previous
    one (``[now - 2W, now]``); receipts outside both are ignored.

    Parameters
    ----------
    receipts:
        Receipts fetched for the current and previous windows.
    window_days:
        Window length ``W`` in days (default 30).
    now:
        End of the current window. Defaults to the current UTC time.

    Examples
    --------
    >>> compute_overview([]).has_data
    False
    """
    current_window = trailing_window(window_days, now)
    previous_window = current_window.previous()

    current = summarise_receipts(filter_window(receipts, current_window))
    previous = summarise_receipts(filter_window(receipts, previous_window))
    return overview_from_summaries(current, previous)


def compute_identification_breakdown(
    receipts: Iterable[Receipt],
) -> IdentificationBreakdown:
    identified_revenue = ZERO
    unidentified_revenue = ZERO
    identified = 0
    unidentified = 0
    customers: set[str] = set()

    for receipt in receipts:
        if receipt.is_identified:
            identified += 1
            identified_revenue += receipt.total
            customers.add(receipt.customer_id)
        else:
            unidentified += 1
            unidentified_revenue += receipt.total

    return IdentificationBreakdown(
        identified_revenue_share=percentage(
            identified_revenue, identified_revenue + unidentified_revenue
        ),
        identified_average_basket=average(identified_revenue, identified),
        unidentified_average_basket=average(unidentified_revenue, unidentified),
        identified_frequency=safe_divide(identified, len(customers)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        ),
    )
