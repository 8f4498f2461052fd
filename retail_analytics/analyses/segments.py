"""Rule-based behavioural segmentation of identified customers.

Each identified customer is profiled from their receipts in the window
(visits, spend, categories, first and last visit). Segment rules are then
evaluated independently, so a customer can belong to several segments or
to none:

======================  ===================================================
Segment                 Rule
======================  ===================================================
Champions               basket > 70, days between visits < 20, visits >= 5
Fidèles                 40 <= basket <= 70, days between visits < 30,
                        visits >= 3
Occasionnels            days between visits > 30 or visits < 3
À risque                more than 40 days since the last visit
Nouveaux clients        first visit within the last 30 days
Explorateurs            3 or more distinct categories
======================  ===================================================

Anonymous receipts are ignored: segmentation needs a known customer, which
is why every segment reports a 100% identification rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Iterable, Sequence

from retail_analytics.foundation.money import HUNDRED, ZERO, average, sum_amounts
from retail_analytics.foundation.records import Category, Receipt
from retail_analytics.foundation.windows import utc_now

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTATION_WINDOW_DAYS = 90

SECONDS_PER_DAY = 86400


class Segment(Enum):
    """Behavioural segments, valued by their URL slug."""

    CHAMPIONS = "champions"
    LOYAL = "fideles"
    OCCASIONAL = "occasionnels"
    AT_RISK = "a-risque"
    NEW = "nouveaux"
    EXPLORERS = "explorateurs"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Segment.CHAMPIONS: "Champions",
    Segment.LOYAL: "Fidèles",
    Segment.OCCASIONAL: "Occasionnels",
    Segment.AT_RISK: "À risque",
    Segment.NEW: "Nouveaux clients",
    Segment.EXPLORERS: "Explorateurs multi-catégories",
}


@dataclass(frozen=True)
class SegmentationRules:
    """Thresholds for every segment rule."""

    champion_min_basket: Decimal = Decimal("70")
    champion_max_days_between_visits: float = 20.0
    champion_min_visits: int = 5
    loyal_min_basket: Decimal = Decimal("40")
    loyal_max_basket: Decimal = Decimal("70")
    loyal_max_days_between_visits: float = 30.0
    loyal_min_visits: int = 3
    occasional_min_days_between_visits: float = 30.0
    occasional_max_visits: int = 3
    at_risk_inactive_days: float = 40.0
    new_customer_days: int = 30
    explorer_min_categories: int = 3


DEFAULT_RULES = SegmentationRules()


@dataclass(frozen=True)
class CustomerProfile:
    """Visit history of one identified customer within the window.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    visit_count:
        Number of receipts.
    total_spend:
        Exact sum of receipt totals.
    average_basket:
        ``total_spend / visit_count`` (unrounded, used by the rules).
    distinct_categories:
        Number of distinct line-item categories bought.
    first_visit, last_visit:
        Earliest and latest receipt timestamps.
    days_active:
        Fractional days between first and last visit, at least 1.
    avg_days_between_visits:
        ``days_active / visit_count``.
    """

    customer_id: str
    visit_count: int
    total_spend: Decimal
    average_basket: Decimal
    distinct_categories: int
    first_visit: datetime
    last_visit: datetime
    days_active: float
    avg_days_between_visits: float

    def __post_init__(self) -> None:
        if self.visit_count <= 0:
            raise ValueError(
                f"Visit count must be positive: {self.visit_count} (customer_id={self.customer_id})"
            )
        if self.last_visit < self.first_visit:
            raise ValueError(
                f"Last visit precedes first visit (customer_id={self.customer_id})"
            )

    def days_since_last_visit(self, now: datetime) -> float:
        return (now - self.last_visit).total_seconds() / SECONDS_PER_DAY


def _is_champion(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return (
        p.average_basket > rules.champion_min_basket
        and p.avg_days_between_visits < rules.champion_max_days_between_visits
        and p.visit_count >= rules.champion_min_visits
    )


def _is_loyal(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return (
        rules.loyal_min_basket <= p.average_basket <= rules.loyal_max_basket
        and p.avg_days_between_visits < rules.loyal_max_days_between_visits
        and p.visit_count >= rules.loyal_min_visits
    )


def _is_occasional(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return (
        p.avg_days_between_visits > rules.occasional_min_days_between_visits
        or p.visit_count < rules.occasional_max_visits
    )


def _is_at_risk(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return p.days_since_last_visit(now) > rules.at_risk_inactive_days


def _is_new(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return p.first_visit >= now - timedelta(days=rules.new_customer_days)


def _is_explorer(p: CustomerProfile, rules: SegmentationRules, now: datetime) -> bool:
    return p.distinct_categories >= rules.explorer_min_categories


SegmentRule = Callable[[CustomerProfile, SegmentationRules, datetime], bool]

SEGMENT_RULES: dict[Segment, SegmentRule] = {
    Segment.CHAMPIONS: _is_champion,
    Segment.LOYAL: _is_loyal,
    Segment.OCCASIONAL: _is_occasional,
    Segment.AT_RISK: _is_at_risk,
    Segment.NEW: _is_new,
    Segment.EXPLORERS: _is_explorer,
}


@dataclass(frozen=True)
class SegmentSummary:
    """Aggregate view of one segment's members."""

    segment: Segment
    size: int
    revenue: Decimal
    average_basket: Decimal
    average_days_between_visits: Decimal
    members: tuple[CustomerProfile, ...]
    identification_rate: Decimal = HUNDRED

    def __post_init__(self) -> None:
        if self.size != len(self.members):
            raise ValueError(
                f"Segment size ({self.size}) does not match member count ({len(self.members)})"
            )

    @property
    def member_ids(self) -> tuple[str, ...]:
        return tuple(profile.customer_id for profile in self.members)

    def as_dict(self) -> dict[str, object]:
        return {
            "slug": self.segment.value,
            "name": self.segment.display_name,
            "size": self.size,
            "revenue": float(self.revenue),
            "average_basket": float(self.average_basket),
            "average_days_between_visits": float(self.average_days_between_visits),
            "identification_rate": float(self.identification_rate),
            "member_ids": list(self.member_ids),
        }


class SegmentationStatus(str, Enum):
    SEGMENTS = "segments"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class SegmentationResult:
    """Tagged segmentation outcome.

    ``SEGMENTS`` carries at least one non-empty segment. ``EMPTY`` means the
    window held no customer matching any rule. ``UNAVAILABLE`` means the
    receipts could not be fetched; ``reason`` then says why.
    """

    status: SegmentationStatus
    segments: tuple[SegmentSummary, ...] = ()
    reason: str | None = None

    @classmethod
    def empty(cls, reason: str | None = None) -> "SegmentationResult":
        return cls(status=SegmentationStatus.EMPTY, reason=reason)

    @classmethod
    def unavailable(cls, reason: str) -> "SegmentationResult":
        return cls(status=SegmentationStatus.UNAVAILABLE, reason=reason)

    @property
    def has_data(self) -> bool:
        return self.status is SegmentationStatus.SEGMENTS

    def get(self, segment: Segment) -> SegmentSummary | None:
        for summary in self.segments:
            if summary.segment is segment:
                return summary
        return None

    def as_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "segments": [summary.as_dict() for summary in self.segments],
        }


def build_customer_profiles(receipts: Iterable[Receipt]) -> list[CustomerProfile]:
    """Group identified receipts by customer into profiles sorted by id."""
    grouped: dict[str, dict[str, object]] = {}
    for receipt in receipts:
        customer_id = receipt.customer_id
        if customer_id is None:
            continue
        data = grouped.setdefault(
            customer_id,
            {
                "visits": 0,
                "amounts": [],
                "categories": set(),
                "first_visit": receipt.created_at,
                "last_visit": receipt.created_at,
            },
        )
        data["visits"] += 1
        data["amounts"].append(receipt.total)
        data["categories"].update(item.category for item in receipt.line_items)
        data["first_visit"] = min(data["first_visit"], receipt.created_at)
        data["last_visit"] = max(data["last_visit"], receipt.created_at)

    profiles: list[CustomerProfile] = []
    for customer_id, data in grouped.items():
        categories: set[Category] = data["categories"]
        visits: int = data["visits"]
        total_spend = sum_amounts(data["amounts"])
        span = (data["last_visit"] - data["first_visit"]).total_seconds()
        days_active = max(1.0, span / SECONDS_PER_DAY)
        profiles.append(
            CustomerProfile(
                customer_id=customer_id,
                visit_count=visits,
                total_spend=total_spend,
                average_basket=total_spend / visits,
                distinct_categories=len(categories),
                first_visit=data["first_visit"],
                last_visit=data["last_visit"],
                days_active=days_active,
                avg_days_between_visits=days_active / visits,
            )
        )

    profiles.sort(key=lambda profile: profile.customer_id)
    return profiles


def summarise_segment(
    segment: Segment, members: Sequence[CustomerProfile]
) -> SegmentSummary:
    revenue = sum_amounts(profile.total_spend for profile in members)
    visits = sum(profile.visit_count for profile in members)
    if members:
        mean_gap = sum(p.avg_days_between_visits for p in members) / len(members)
    else:
        mean_gap = 0.0
    return SegmentSummary(
        segment=segment,
        size=len(members),
        revenue=revenue,
        average_basket=average(revenue, visits),
        average_days_between_visits=Decimal(str(mean_gap)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        ),
        members=tuple(members),
    )


def classify_profiles(
    profiles: Sequence[CustomerProfile],
    *,
    now: datetime,
    rules: SegmentationRules = DEFAULT_RULES,
) -> dict[Segment, list[CustomerProfile]]:
    """Evaluate every rule against every profile independently."""
    members: dict[Segment, list[CustomerProfile]] = {segment: [] for segment in Segment}
    for profile in profiles:
        for segment, rule in SEGMENT_RULES.items():
            if rule(profile, rules, now):
                members[segment].append(profile)
    return members


def segment_customers(
    receipts: Iterable[Receipt],
    *,
    now: datetime | None = None,
    rules: SegmentationRules = DEFAULT_RULES,
) -> SegmentationResult:
    """Segment the identified customers found in ``receipts``.

    Parameters
    ----------
    receipts:
        Receipts of the segmentation window (90 days by default upstream).
    now:
        Reference time for recency rules. Defaults to the current UTC time.
    rules:
        Segment thresholds.

    Returns
    -------
    SegmentationResult
        Non-empty segments in :class:`Segment` declaration order, or an
        ``EMPTY`` result when no customer matched any rule.
    """
    reference = now if now is not None else utc_now()
    profiles = build_customer_profiles(receipts)
    if not profiles:
        return SegmentationResult.empty("No identified customers in window")

    classified = classify_profiles(profiles, now=reference, rules=rules)
    summaries = tuple(
        summarise_segment(segment, members)
        for segment, members in classified.items()
        if members
    )
    if not summaries:
        return SegmentationResult.empty("No customer matched any segment rule")

    logger.debug(
        f"Segmented {len(profiles)} customers into {len(summaries)} segments"
    )
    return SegmentationResult(status=SegmentationStatus.SEGMENTS, segments=summaries)
