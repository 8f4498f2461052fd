from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import random
from typing import List, Optional, Sequence, Tuple

from retail_analytics.foundation.records import (
    Category,
    Customer,
    LineItem,
    Receipt,
    ReceiptStatus,
    Store,
)

DEFAULT_CATEGORIES: Tuple[str, ...] = (
    "Livres",
    "Hi-Tech",
    "Gaming",
    "Vinyles",
    "Accessoires",
    "Musique",
    "Cinéma",
)

DEFAULT_STORES: Tuple[Tuple[str, str], ...] = (
    ("Paris Bastille", "Paris"),
    ("La Défense", "Puteaux"),
    ("Paris Ternes", "Paris"),
    ("Lyon Part-Dieu", "Lyon"),
)

FIRST_NAMES = ("Jean", "Marie", "Pierre", "Sophie", "Antoine", "Camille", "Lucas", "Emma")
LAST_NAMES = ("Martin", "Bernard", "Dubois", "Thomas", "Robert", "Richard", "Petit", "Durand")

STATUS_WEIGHTS: Tuple[Tuple[ReceiptStatus, float], ...] = (
    (ReceiptStatus.ISSUED, 0.70),
    (ReceiptStatus.CLAIMED, 0.15),
    (ReceiptStatus.REFUNDED, 0.10),
    (ReceiptStatus.CANCELLED, 0.05),
)


@dataclass(frozen=True)
class ScenarioConfig:
    """Configuration for the sample receipt generator.

    Attributes
    ----------
    identified_share: Probability that a receipt is linked to a customer.
    loyalty_share: Probability that a generated customer holds a loyalty account.
    min_items, max_items: Inclusive bounds on line items per receipt.
    max_quantity: Upper bound on the quantity of a line (lower bound is 1).
    min_unit_price, max_unit_price: Uniform unit price range, rounded to cents.
    status_weights: Relative frequency of each receipt status.
    seed: Optional RNG seed for reproducibility.
    """

    identified_share: float = 0.8
    loyalty_share: float = 0.5
    min_items: int = 1
    max_items: int = 6
    max_quantity: int = 3
    min_unit_price: float = 5.0
    max_unit_price: float = 150.0
    status_weights: Tuple[Tuple[ReceiptStatus, float], ...] = STATUS_WEIGHTS
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 <= self.identified_share <= 1:
            raise ValueError(
                f"identified_share must be in [0, 1], got {self.identified_share}"
            )
        if not 0 <= self.loyalty_share <= 1:
            raise ValueError(f"loyalty_share must be in [0, 1], got {self.loyalty_share}")
        if self.min_items < 0 or self.max_items < self.min_items:
            raise ValueError(
                f"Invalid line item bounds: [{self.min_items}, {self.max_items}]"
            )
        if self.max_quantity < 1:
            raise ValueError(f"max_quantity must be >= 1, got {self.max_quantity}")
        if self.min_unit_price < 0 or self.max_unit_price < self.min_unit_price:
            raise ValueError(
                f"Invalid unit price range: [{self.min_unit_price}, {self.max_unit_price}]"
            )


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _random_instant(rng: random.Random, start: datetime, end: datetime) -> datetime:
    span = (end - start).total_seconds()
    # Whole seconds keep generated timestamps readable in fixtures
    return start + timedelta(seconds=int(rng.random() * span))


def generate_stores(n: Optional[int] = None) -> List[Store]:
    """Return ``n`` stores (all default stores when ``n`` is None)."""
    count = len(DEFAULT_STORES) if n is None else n
    if count <= 0:
        return []
    stores: List[Store] = []
    for i in range(count):
        name, city = DEFAULT_STORES[i % len(DEFAULT_STORES)]
        if i >= len(DEFAULT_STORES):
            name = f"{name} {i // len(DEFAULT_STORES) + 1}"
        stores.append(Store(store_id=f"S-{i + 1}", name=name, city=city))
    return stores


def generate_customers(
    n: int,
    start: datetime,
    end: datetime,
    *,
    seed: Optional[int] = None,
    loyalty_share: float = 0.5,
) -> List[Customer]:
    """Generate ``n`` customers created uniformly between ``start`` and ``end``."""

    if n <= 0:
        return []
    start, end = _as_utc(start), _as_utc(end)
    if start > end:
        raise ValueError("start must be <= end")

    rng = random.Random(seed)
    customers: List[Customer] = []
    for i in range(n):
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        customers.append(
            Customer(
                customer_id=f"C-{i + 1}",
                first_name=first,
                last_name=last,
                email=f"{first.lower()}.{last.lower()}.{i + 1}@demo.com",
                created_at=_random_instant(rng, start, end),
                has_loyalty_account=rng.random() < loyalty_share,
            )
        )
    return customers


def _sample_status(
    rng: random.Random, weights: Sequence[Tuple[ReceiptStatus, float]]
) -> ReceiptStatus:
    statuses = [status for status, _ in weights]
    return rng.choices(statuses, weights=[w for _, w in weights], k=1)[0]


def generate_receipts(
    n: int,
    stores: Sequence[Store],
    customers: Sequence[Customer],
    start: datetime,
    end: datetime,
    *,
    scenario: Optional[ScenarioConfig] = None,
    categories: Optional[Sequence[str]] = None,
) -> List[Receipt]:
    """Generate ``n`` receipts issued between ``start`` and ``end``.

    Each receipt's total is the exact sum of its line totals. Receipts are
    returned in chronological order.
    """

    if n <= 0:
        return []
    if not stores:
        raise ValueError("at least one store is required")
    start, end = _as_utc(start), _as_utc(end)
    if start > end:
        raise ValueError("start must be <= end")

    scenario = scenario or ScenarioConfig()
    rng = random.Random(scenario.seed)
    labels = list(categories) if categories else list(DEFAULT_CATEGORIES)

    receipts: List[Receipt] = []
    for i in range(n):
        customer = None
        if customers and rng.random() < scenario.identified_share:
            customer = rng.choice(customers)

        line_items = []
        for _ in range(rng.randint(scenario.min_items, scenario.max_items)):
            price = rng.uniform(scenario.min_unit_price, scenario.max_unit_price)
            line_items.append(
                LineItem(
                    category=Category(rng.choice(labels)),
                    product_name=f"Produit {rng.randint(1, 100)}",
                    quantity=rng.randint(1, scenario.max_quantity),
                    unit_price=Decimal(str(round(price, 2))),
                )
            )

        total = sum((item.line_total for item in line_items), Decimal("0"))
        receipts.append(
            Receipt(
                receipt_id=f"R-{i + 1}",
                store=rng.choice(list(stores)),
                total=total,
                status=_sample_status(rng, scenario.status_weights),
                created_at=_random_instant(rng, start, end),
                line_items=tuple(line_items),
                customer=customer,
            )
        )

    receipts.sort(key=lambda r: (r.created_at, r.receipt_id))
    return receipts
