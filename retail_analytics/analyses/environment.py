"""Paper and CO2 savings from digitally claimed receipts.

The estimate is a linear model over fixed calibration constants:

- one printed receipt weighs 3 g of paper,
- each kilogram of paper avoided saves 0.8 kg of CO2,
- each kilogram of paper corresponds to 0.1 tree.

The constants are reproduced exactly so that figures match the ones shown
elsewhere in the back office.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from retail_analytics.foundation.money import HUNDRED
from retail_analytics.foundation.records import Receipt
from retail_analytics.foundation.windows import filter_window, trailing_window

PAPER_KG_PER_RECEIPT = Decimal("0.003")
CO2_KG_PER_PAPER_KG = Decimal("0.8")
TREES_PER_PAPER_KG = Decimal("0.1")

DEFAULT_ENVIRONMENT_WINDOW_DAYS = 365


@dataclass(frozen=True)
class StorePaperSavings:
    store_name: str
    paper_saved_kg: Decimal


@dataclass(frozen=True)
class EnvironmentalImpact:
    """Savings attributed to ``digital_receipts`` claimed receipts."""

    digital_receipts: int
    paper_saved_kg: Decimal
    co2_avoided_kg: Decimal
    trees_equivalent: Decimal
    by_store: tuple[StorePaperSavings, ...] = ()

    def __post_init__(self) -> None:
        if self.digital_receipts < 0:
            raise ValueError(
                f"Digital receipt count cannot be negative: {self.digital_receipts}"
            )

    def as_dict(self) -> dict[str, object]:
        return {
            "digital_receipts": self.digital_receipts,
            "paper_saved_kg": float(self.paper_saved_kg),
            "co2_avoided_kg": float(self.co2_avoided_kg),
            "trees_equivalent": float(self.trees_equivalent),
            "by_store": [
                {"store_name": s.store_name, "paper_saved_kg": float(s.paper_saved_kg)}
                for s in self.by_store
            ],
        }


def _impact_for(
    paper: Decimal, by_store: tuple[StorePaperSavings, ...] = ()
) -> EnvironmentalImpact:
    count = paper / PAPER_KG_PER_RECEIPT
    return EnvironmentalImpact(
        digital_receipts=int(count.to_integral_value(rounding=ROUND_HALF_UP)),
        paper_saved_kg=paper,
        co2_avoided_kg=paper * CO2_KG_PER_PAPER_KG,
        trees_equivalent=paper * TREES_PER_PAPER_KG,
        by_store=by_store,
    )


def estimate_from_count(digital_count: int) -> EnvironmentalImpact:
    """Estimate savings for a number of digitally claimed receipts.

    >>> impact = estimate_from_count(1000)
    >>> impact.paper_saved_kg, impact.co2_avoided_kg, impact.trees_equivalent
    (Decimal('3.000'), Decimal('2.4000'), Decimal('0.3000'))
    """
    if digital_count < 0:
        raise ValueError(f"Digital receipt count cannot be negative: {digital_count}")
    return _impact_for(digital_count * PAPER_KG_PER_RECEIPT)


def estimate_environmental_impact(
    receipts: Iterable[Receipt],
    *,
    now: datetime | None = None,
    window_days: int = DEFAULT_ENVIRONMENT_WINDOW_DAYS,
) -> EnvironmentalImpact:
    """Estimate savings from the claimed receipts of the trailing window.

    Includes a per-store paper breakdown, largest saving first.
    """
    window = trailing_window(window_days, now)
    per_store: dict[str, int] = defaultdict(int)
    count = 0
    for receipt in filter_window(receipts, window):
        if receipt.is_digital:
            count += 1
            per_store[receipt.store.name] += 1

    by_store = tuple(
        StorePaperSavings(store_name=name, paper_saved_kg=n * PAPER_KG_PER_RECEIPT)
        for name, n in sorted(per_store.items(), key=lambda item: (-item[1], item[0]))
    )
    return _impact_for(count * PAPER_KG_PER_RECEIPT, by_store)


def project_environmental_impact(
    impact: EnvironmentalImpact, digital_rate_increase_pct: Decimal | int | float
) -> EnvironmentalImpact:
    """Scale an estimate linearly for a proposed rise in digital receipts.

    ``digital_rate_increase_pct=20`` means 20% more digitally claimed
    receipts than in ``impact``. The projection scales the unrounded paper
    figure; ``digital_receipts`` is that figure expressed as a count, rounded
    half up, so chained projections agree with a single combined one.
    """
    factor = 1 + Decimal(str(digital_rate_increase_pct)) / HUNDRED
    if factor < 0:
        raise ValueError(
            f"Digital rate increase cannot be below -100%: {digital_rate_increase_pct}"
        )
    by_store = tuple(
        StorePaperSavings(s.store_name, s.paper_saved_kg * factor) for s in impact.by_store
    )
    return _impact_for(impact.paper_saved_kg * factor, by_store)
