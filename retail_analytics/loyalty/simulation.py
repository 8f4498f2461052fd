"""What-if projection of loyalty rule changes.

This is a deterministic heuristic, not a ledger replay. Given a proposed
change (a percentage change of points per currency unit, or a bonus
multiplier on one category) it estimates:

- how many members would be affected, from a fixed adoption rate;
- the extra point liability, by scaling the current point balance by the
  proposed multiplier change;
- the extra revenue, by applying a fixed revenue elasticity to an
  engagement boost and the members' baseline spend.

Same inputs always give the same outputs; the figures are an estimate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from pydantic import BaseModel, Field, model_validator

from retail_analytics.foundation.money import HUNDRED, ZERO, percentage, sum_amounts
from retail_analytics.foundation.records import Category, Receipt
from retail_analytics.loyalty.program import LoyaltyProgram


@dataclass(frozen=True)
class SimulationConfig:
    """Calibration constants of the simulation heuristic.

    Attributes
    ----------
    adoption_rate:
        Share of members assumed to react to a points-rate change.
    revenue_elasticity:
        Revenue change, in percent, per engagement point gained.
    engagement_per_points_pct:
        Engagement points gained per percent of points-rate increase.
    category_bonus_engagement:
        Engagement points gained from a new category bonus.
    """

    adoption_rate: Decimal = Decimal("0.3")
    revenue_elasticity: Decimal = Decimal("0.5")
    engagement_per_points_pct: Decimal = Decimal("0.1")
    category_bonus_engagement: Decimal = Decimal("5")


DEFAULT_SIMULATION_CONFIG = SimulationConfig()


class SimulationRequest(BaseModel):
    """Proposed rule change to simulate."""

    points_per_unit_change_pct: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("-100"),
        description="Percentage change of points earned per currency unit",
    )
    bonus_category: str | None = Field(
        default=None, description="Category receiving a bonus multiplier"
    )
    bonus_multiplier: Decimal = Field(
        default=Decimal("2"),
        gt=Decimal("0"),
        description="Point multiplier proposed for bonus_category",
    )

    @model_validator(mode="after")
    def _require_a_change(self) -> "SimulationRequest":
        if self.points_per_unit_change_pct == 0 and not self.bonus_category:
            raise ValueError(
                "Simulation needs a points rate change or a bonus category"
            )
        return self


@dataclass(frozen=True)
class SimulationResult:
    """Estimated impact of a rule change.

    Attributes
    ----------
    customers_affected:
        Members expected to react to the change.
    incremental_points:
        Extra point liability created by the change.
    incremental_revenue:
        Extra revenue over the members' baseline spend.
    revenue_uplift_pct:
        ``incremental_revenue`` as a percentage of baseline spend.
    engagement_impact:
        Engagement boost, in points, assumed by the heuristic.
    """

    customers_affected: int
    incremental_points: int
    incremental_revenue: Decimal
    revenue_uplift_pct: Decimal
    engagement_impact: Decimal

    def as_dict(self) -> dict[str, object]:
        return {
            "customers_affected": self.customers_affected,
            "incremental_points": self.incremental_points,
            "incremental_revenue": float(self.incremental_revenue),
            "revenue_uplift_pct": float(self.revenue_uplift_pct),
            "engagement_impact": float(self.engagement_impact),
        }


def _round_int(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def _category_share(receipts: Iterable[Receipt], members: set[str], category: Category) -> Decimal:
    """Share of members' line-item spend made in ``category``."""
    total = ZERO
    in_category = ZERO
    for receipt in receipts:
        if receipt.customer_id not in members:
            continue
        for item in receipt.line_items:
            total += item.line_total
            if item.category == category:
                in_category += item.line_total
    if total == 0:
        return ZERO
    return in_category / total


def simulate(
    program: LoyaltyProgram,
    request: SimulationRequest,
    *,
    receipts: Iterable[Receipt] = (),
    config: SimulationConfig = DEFAULT_SIMULATION_CONFIG,
) -> SimulationResult:
    """Estimate the impact of ``request`` on ``program``.

    Parameters
    ----------
    program:
        Current program with its member accounts; baseline spend and point
        balance are the sums over the accounts.
    request:
        Proposed change.
    receipts:
        Members' recent receipts, used to estimate how much of the point
        balance a category bonus would touch.
    config:
        Heuristic constants.
    """
    accounts = program.accounts
    members = {account.customer_id for account in accounts}
    base_revenue = sum_amounts(account.total_spend for account in accounts)
    base_points = Decimal(sum(account.points for account in accounts))

    points_multiplier = 1 + request.points_per_unit_change_pct / HUNDRED
    incremental_points = base_points * (points_multiplier - 1)

    if request.bonus_category:
        category = Category(request.bonus_category)
        multiplier_delta = request.bonus_multiplier - program.multiplier_for(category)
        share = _category_share(receipts, members, category)
        incremental_points += base_points * points_multiplier * share * multiplier_delta
        engagement = config.category_bonus_engagement
    else:
        engagement = request.points_per_unit_change_pct * config.engagement_per_points_pct

    incremental_revenue = base_revenue * engagement / HUNDRED * config.revenue_elasticity

    return SimulationResult(
        customers_affected=_round_int(len(accounts) * config.adoption_rate),
        incremental_points=_round_int(incremental_points),
        incremental_revenue=incremental_revenue.quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        ),
        revenue_uplift_pct=percentage(incremental_revenue, base_revenue),
        engagement_impact=engagement,
    )
