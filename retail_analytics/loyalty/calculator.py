"""Tier resolution, point accrual and program statistics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Sequence

from retail_analytics.foundation.money import (
    ZERO,
    percentage,
    safe_divide,
    sum_amounts,
)
from retail_analytics.foundation.records import Category, Receipt
from retail_analytics.foundation.windows import trailing_window, utc_now
from retail_analytics.loyalty.program import LoyaltyProgram, LoyaltyTier

#: Share of the point balance assumed to have been redeemed. The data layer
#: keeps no redemption ledger, so this is an estimate.
ESTIMATED_POINTS_USED_SHARE = Decimal("0.3")

DEFAULT_ENGAGEMENT_WINDOW_DAYS = 60
DEFAULT_LOYALTY_REVENUE_WINDOW_DAYS = 30


def resolve_tier(
    spend: Decimal, tiers: Sequence[LoyaltyTier]
) -> LoyaltyTier | None:
    """Return the tier a cumulative ``spend`` falls into.

    The last tier, in ascending ``min_spend`` order, whose range contains
    ``spend`` wins. ``min_spend`` is inclusive and ``max_spend`` exclusive,
    so a spend exactly on a boundary belongs to the higher tier. Returns
    ``None`` when no tier covers ``spend``.

    >>> from retail_analytics.loyalty.program import DEFAULT_TIERS
    >>> resolve_tier(Decimal("100"), DEFAULT_TIERS).name
    'Argent'
    """
    resolved: LoyaltyTier | None = None
    for tier in sorted(tiers, key=lambda t: (t.min_spend, t.sort_order)):
        if tier.contains(spend):
            resolved = tier
    return resolved


def points_for_amount(
    amount: Decimal,
    program: LoyaltyProgram,
    category: Category | str | None = None,
) -> int:
    """``floor(amount * points_per_unit * category multiplier)``.

    >>> from retail_analytics.loyalty.program import DEFAULT_PROGRAM
    >>> points_for_amount(Decimal("42.50"), DEFAULT_PROGRAM, "Livres")
    85
    """
    if amount <= 0:
        return 0
    raw = amount * program.points_per_unit * program.multiplier_for(category)
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def points_for_receipt(receipt: Receipt, program: LoyaltyProgram) -> int:
    """Points earned by a receipt.

    Line items are grouped by category and each category accrues (and is
    floored) independently against its own multiplier. A receipt without
    line items accrues on its total at the base rate.
    """
    if not receipt.line_items:
        return points_for_amount(receipt.total, program)

    spend_by_category: dict[Category, Decimal] = {}
    for item in receipt.line_items:
        spend_by_category[item.category] = (
            spend_by_category.get(item.category, ZERO) + item.line_total
        )
    return sum(
        points_for_amount(amount, program, category)
        for category, amount in spend_by_category.items()
    )


def redemption_value_per_point(program: LoyaltyProgram) -> Decimal:
    """Currency value of one point (``conversion_value / conversion_rate``)."""
    return safe_divide(program.conversion_value, program.conversion_rate)


def points_value(points: int, program: LoyaltyProgram) -> Decimal:
    return Decimal(points) * redemption_value_per_point(program)


@dataclass(frozen=True)
class TierDistribution:
    tier: str
    count: int
    min_spend: Decimal
    max_spend: Decimal | None

    def as_dict(self) -> dict[str, object]:
        return {
            "tier": self.tier,
            "count": self.count,
            "min_spend": float(self.min_spend),
            "max_spend": float(self.max_spend) if self.max_spend is not None else None,
        }


@dataclass(frozen=True)
class LoyaltyStats:
    """Program-level figures for the loyalty dashboard.

    Attributes
    ----------
    total_members:
        Number of loyalty accounts.
    total_points:
        Sum of point balances.
    points_used:
        Estimated redeemed points (see ``ESTIMATED_POINTS_USED_SHARE``).
    points_in_circulation:
        ``total_points - points_used``.
    engagement_rate:
        Percentage of accounts active within the engagement window.
    loyalty_revenue:
        Revenue from members' receipts within the revenue window.
    tier_distribution:
        Member count per tier, tiers in ascending order.
    """

    total_members: int
    total_points: int
    points_used: int
    points_in_circulation: int
    engagement_rate: Decimal
    loyalty_revenue: Decimal
    tier_distribution: tuple[TierDistribution, ...]

    def as_dict(self) -> dict[str, object]:
        return {
            "total_members": self.total_members,
            "total_points": self.total_points,
            "points_used": self.points_used,
            "points_in_circulation": self.points_in_circulation,
            "engagement_rate": float(self.engagement_rate),
            "loyalty_revenue": float(self.loyalty_revenue),
            "tier_distribution": [tier.as_dict() for tier in self.tier_distribution],
        }


def compute_loyalty_stats(
    program: LoyaltyProgram,
    receipts: Iterable[Receipt] = (),
    *,
    now: datetime | None = None,
    engagement_window_days: int = DEFAULT_ENGAGEMENT_WINDOW_DAYS,
    revenue_window_days: int = DEFAULT_LOYALTY_REVENUE_WINDOW_DAYS,
) -> LoyaltyStats:
    """Summarise the program's membership.

    Parameters
    ----------
    program:
        Program with its tiers and accounts.
    receipts:
        Receipts to attribute to members; only members' receipts inside the
        revenue window count toward ``loyalty_revenue``.
    now:
        Reference time. Defaults to the current UTC time.
    """
    reference = now if now is not None else utc_now()
    accounts = program.accounts

    total_points = sum(account.points for account in accounts)
    points_used = int(
        (Decimal(total_points) * ESTIMATED_POINTS_USED_SHARE).to_integral_value(
            rounding=ROUND_FLOOR
        )
    )

    engaged_since = reference - timedelta(days=engagement_window_days)
    engaged = sum(
        1
        for account in accounts
        if account.last_activity is not None and account.last_activity >= engaged_since
    )

    members = {account.customer_id for account in accounts}
    revenue_window = trailing_window(revenue_window_days, reference)
    loyalty_revenue = sum_amounts(
        receipt.total
        for receipt in receipts
        if receipt.customer_id in members and revenue_window.contains(receipt.created_at)
    )

    tier_counts: Counter[str] = Counter()
    for account in accounts:
        tier = resolve_tier(account.total_spend, program.tiers)
        if tier is not None:
            tier_counts[tier.name] += 1

    return LoyaltyStats(
        total_members=len(accounts),
        total_points=total_points,
        points_used=points_used,
        points_in_circulation=total_points - points_used,
        engagement_rate=percentage(engaged, len(accounts)),
        loyalty_revenue=loyalty_revenue,
        tier_distribution=tuple(
            TierDistribution(
                tier=tier.name,
                count=tier_counts[tier.name],
                min_spend=tier.min_spend,
                max_spend=tier.max_spend,
            )
            for tier in program.tiers
        ),
    )
