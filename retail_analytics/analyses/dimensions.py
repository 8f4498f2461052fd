"""Store and category performance.

Both breakdowns share one generic aggregation: a key function maps each
receipt to one or more :class:`DimensionContribution` items (a key, a display
name and the amount the receipt contributes to that key). Per key we then
sum revenue and count the *distinct* receipts that contributed, so that a
receipt spanning three categories counts once toward each of them.

Store revenue comes from receipt totals; category revenue comes from line
items (``unit_price * quantity``).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from retail_analytics.foundation.money import ZERO, average, percentage, sum_amounts
from retail_analytics.foundation.records import Category, Receipt

#: Number of categories presented before the tail is merged or dropped.
DEFAULT_CATEGORY_LIMIT = 6

OTHER_CATEGORY_KEY = "__other__"
OTHER_CATEGORY_LABEL = "Autres"


@dataclass(frozen=True)
class DimensionContribution:
    key: str
    display_name: str
    amount: Decimal


KeyFunction = Callable[[Receipt], Iterable[DimensionContribution]]


@dataclass(frozen=True)
class DimensionMetrics:
    """Performance of one store or category.

    Attributes
    ----------
    key:
        Stable identifier (store id, or normalised category key).
    display_name:
        Human-readable label.
    revenue:
        Exact revenue attributed to the key.
    ticket_count:
        Distinct receipts that contributed to the key.
    average_basket:
        ``revenue / ticket_count``.
    identification_rate:
        Percentage of those receipts linked to a known customer.
    digital_rate:
        Percentage of those receipts claimed digitally.
    """

    key: str
    display_name: str
    revenue: Decimal
    ticket_count: int
    average_basket: Decimal
    identification_rate: Decimal
    digital_rate: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.ticket_count < 0:
            raise ValueError(
                f"Ticket count cannot be negative: {self.ticket_count} (key={self.key})"
            )
        if not 0 <= self.identification_rate <= 100:
            raise ValueError(
                f"Identification rate must be 0-100: {self.identification_rate} (key={self.key})"
            )

    def as_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "revenue": float(self.revenue),
            "ticket_count": self.ticket_count,
            "average_basket": float(self.average_basket),
            "identification_rate": float(self.identification_rate),
            "digital_rate": float(self.digital_rate),
        }


@dataclass(frozen=True)
class CategoryEngagement:
    """Customer engagement with one category.

    Attributes
    ----------
    key, display_name:
        Normalised category key and label.
    days_between_visits:
        Mean gap in days between consecutive visits of the same customer
        to the category (0 when no customer visited twice).
    new_customers_rate:
        Percentage of the category's customers created on or after the
        window start.
    loyalty_rate:
        Percentage of the category's customers holding a loyalty account.
    digital_rate:
        Percentage of the category's receipts claimed digitally.
    """

    key: str
    display_name: str
    days_between_visits: Decimal
    new_customers_rate: Decimal
    loyalty_rate: Decimal
    digital_rate: Decimal

    def as_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "days_between_visits": float(self.days_between_visits),
            "new_customers_rate": float(self.new_customers_rate),
            "loyalty_rate": float(self.loyalty_rate),
            "digital_rate": float(self.digital_rate),
        }


def _sort_key(metrics: DimensionMetrics) -> tuple[Decimal, str]:
    return (-metrics.revenue, metrics.key)


def aggregate_by_dimension(
    receipts: Iterable[Receipt], key_fn: KeyFunction
) -> list[DimensionMetrics]:
    """Aggregate receipts by the keys produced by ``key_fn``.

    Results are sorted by revenue descending; ties are broken by key so the
    output is deterministic.
    """
    buckets: dict[str, dict[str, object]] = {}
    for receipt in receipts:
        for contribution in key_fn(receipt):
            bucket = buckets.setdefault(
                contribution.key,
                {
                    "display_name": contribution.display_name,
                    "revenue": ZERO,
                    "receipts": set(),
                    "identified": set(),
                    "digital": set(),
                },
            )
            bucket["revenue"] += contribution.amount
            bucket["receipts"].add(receipt.receipt_id)
            if receipt.is_identified:
                bucket["identified"].add(receipt.receipt_id)
            if receipt.is_digital:
                bucket["digital"].add(receipt.receipt_id)

    metrics = [
        _metrics_from_bucket(key, payload) for key, payload in buckets.items()
    ]
    metrics.sort(key=_sort_key)
    return metrics


def _metrics_from_bucket(key: str, payload: dict[str, object]) -> DimensionMetrics:
    tickets = len(payload["receipts"])
    return DimensionMetrics(
        key=key,
        display_name=payload["display_name"],
        revenue=payload["revenue"],
        ticket_count=tickets,
        average_basket=average(payload["revenue"], tickets),
        identification_rate=percentage(len(payload["identified"]), tickets),
        digital_rate=percentage(len(payload["digital"]), tickets),
    )


def store_contributions(receipt: Receipt) -> list[DimensionContribution]:
    return [
        DimensionContribution(
            key=receipt.store.store_id,
            display_name=receipt.store.name,
            amount=receipt.total,
        )
    ]


def category_contributions(receipt: Receipt) -> list[DimensionContribution]:
    """One contribution per distinct category present on the receipt."""
    per_category: dict[Category, Decimal] = {}
    for item in receipt.line_items:
        per_category[item.category] = (
            per_category.get(item.category, ZERO) + item.line_total
        )
    return [
        DimensionContribution(key=category.key, display_name=category.label, amount=amount)
        for category, amount in per_category.items()
    ]


def aggregate_by_store(receipts: Iterable[Receipt]) -> list[DimensionMetrics]:
    return aggregate_by_dimension(receipts, store_contributions)


def aggregate_by_category(
    receipts: Sequence[Receipt],
    limit: int | None = DEFAULT_CATEGORY_LIMIT,
    *,
    include_other: bool = True,
) -> list[DimensionMetrics]:
    """Category performance, capped to the ``limit`` best-selling categories.

    Parameters
    ----------
    receipts:
        Receipts with their line items.
    limit:
        Number of categories to keep (default 6). ``None`` keeps them all.
    include_other:
        Merge the categories beyond ``limit`` into a trailing ``"Autres"``
        bucket so that category revenue still adds up to line-item revenue.
        When ``False`` the tail is dropped.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"Category limit cannot be negative: {limit}")

    ranked = aggregate_by_dimension(receipts, category_contributions)
    if limit is None or len(ranked) <= limit:
        return ranked

    head = ranked[:limit]
    if not include_other:
        return head

    tail_keys = {metrics.key for metrics in ranked[limit:]}

    def other_contributions(receipt: Receipt) -> list[DimensionContribution]:
        tail = [c for c in category_contributions(receipt) if c.key in tail_keys]
        if not tail:
            return []
        return [
            DimensionContribution(
                key=OTHER_CATEGORY_KEY,
                display_name=OTHER_CATEGORY_LABEL,
                amount=sum_amounts(c.amount for c in tail),
            )
        ]

    other = aggregate_by_dimension(receipts, other_contributions)
    return head + other


def analyze_category_engagement(
    receipts: Iterable[Receipt], window_start: datetime
) -> list[CategoryEngagement]:
    """Per-category visit cadence, new-customer, loyalty and digital rates.

    Returned in category key order; pair with :func:`aggregate_by_category`
    by key for a full category table.
    """
    labels: dict[str, str] = {}
    receipt_ids: dict[str, set[str]] = defaultdict(set)
    digital_ids: dict[str, set[str]] = defaultdict(set)
    customers: dict[str, set[str]] = defaultdict(set)
    new_customers: dict[str, set[str]] = defaultdict(set)
    loyalty_customers: dict[str, set[str]] = defaultdict(set)
    visits: dict[str, dict[str, set[datetime]]] = defaultdict(lambda: defaultdict(set))

    for receipt in receipts:
        categories = {item.category for item in receipt.line_items}
        for category in categories:
            key = category.key
            labels.setdefault(key, category.label)
            receipt_ids[key].add(receipt.receipt_id)
            if receipt.is_digital:
                digital_ids[key].add(receipt.receipt_id)

            customer = receipt.customer
            if customer is None:
                continue
            customers[key].add(customer.customer_id)
            visits[key][customer.customer_id].add(receipt.created_at)
            if customer.created_at is not None and customer.created_at >= window_start:
                new_customers[key].add(customer.customer_id)
            if customer.has_loyalty_account:
                loyalty_customers[key].add(customer.customer_id)

    results: list[CategoryEngagement] = []
    for key in sorted(labels):
        gap_seconds = 0.0
        gaps = 0
        for timestamps in visits[key].values():
            ordered = sorted(timestamps)
            for earlier, later in zip(ordered, ordered[1:]):
                gap_seconds += (later - earlier).total_seconds()
                gaps += 1
        days_between = (
            Decimal(str(round(gap_seconds / gaps / 86400, 1))) if gaps else ZERO
        )

        customer_count = len(customers[key])
        results.append(
            CategoryEngagement(
                key=key,
                display_name=labels[key],
                days_between_visits=days_between,
                new_customers_rate=percentage(len(new_customers[key]), customer_count),
                loyalty_rate=percentage(len(loyalty_customers[key]), customer_count),
                digital_rate=percentage(len(digital_ids[key]), len(receipt_ids[key])),
            )
        )
    return results
