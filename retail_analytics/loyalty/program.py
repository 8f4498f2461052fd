"""Loyalty program configuration, tiers and member accounts.

A deployment has a single loyalty program. It is created once, at setup
time, by :func:`ensure_program_exists`; read paths never create it as a side
effect. The data layer is expected to enforce a unique constraint so that
two concurrent setup calls cannot create two programs: the loser of that
race sees :class:`ProgramAlreadyExistsError` and reads the winner's program.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Protocol

from retail_analytics.foundation.records import Category

logger = logging.getLogger(__name__)


class ProgramAlreadyExistsError(RuntimeError):
    """Raised by a :class:`ProgramStore` when a program already exists."""


@dataclass(frozen=True)
class LoyaltyTier:
    """A spend bracket ``[min_spend, max_spend)``; open-ended when no max."""

    name: str
    min_spend: Decimal
    max_spend: Decimal | None = None
    benefits: Mapping[str, str] = field(default_factory=dict)
    sort_order: int = 0

    def __post_init__(self) -> None:
        if self.min_spend < 0:
            raise ValueError(
                f"Tier minimum spend cannot be negative: {self.min_spend} (tier={self.name})"
            )
        if self.max_spend is not None and self.max_spend <= self.min_spend:
            raise ValueError(
                f"Tier maximum spend ({self.max_spend}) must exceed minimum "
                f"({self.min_spend}) (tier={self.name})"
            )

    def contains(self, spend: Decimal) -> bool:
        if spend < self.min_spend:
            return False
        return self.max_spend is None or spend < self.max_spend


@dataclass(frozen=True)
class LoyaltyAccount:
    """A customer's membership: point balance and cumulative spend.

    The tier is not stored here; it is derived from ``total_spend`` against
    the program's tiers whenever it is needed.
    """

    customer_id: str
    points: int
    total_spend: Decimal
    last_activity: datetime | None = None

    def __post_init__(self) -> None:
        if self.points < 0:
            raise ValueError(
                f"Point balance cannot be negative: {self.points} (customer_id={self.customer_id})"
            )
        if self.total_spend < 0:
            raise ValueError(
                f"Total spend cannot be negative: {self.total_spend} (customer_id={self.customer_id})"
            )


@dataclass(frozen=True)
class LoyaltyProgram:
    """Program rules, tiers and member accounts.

    Attributes
    ----------
    name:
        Program display name.
    points_per_unit:
        Points earned per currency unit spent.
    conversion_rate:
        Number of points that convert into ``conversion_value``.
    conversion_value:
        Currency value of ``conversion_rate`` points.
    category_multipliers:
        Point multiplier per category; categories not listed use 1.
    points_expiry_days:
        Days after which unused points expire.
    tiers:
        Spend brackets, stored in ascending ``min_spend`` order.
    accounts:
        Member accounts.
    """

    name: str
    points_per_unit: Decimal = Decimal("1")
    conversion_rate: int = 100
    conversion_value: Decimal = Decimal("5")
    category_multipliers: Mapping[Category, Decimal] = field(default_factory=dict)
    points_expiry_days: int = 365
    tiers: tuple[LoyaltyTier, ...] = ()
    accounts: tuple[LoyaltyAccount, ...] = ()

    def __post_init__(self) -> None:
        if self.points_per_unit < 0:
            raise ValueError(
                f"Points per unit cannot be negative: {self.points_per_unit}"
            )
        if self.conversion_rate < 0:
            raise ValueError(
                f"Conversion rate cannot be negative: {self.conversion_rate}"
            )
        multipliers = {
            (key if isinstance(key, Category) else Category(key)): Decimal(str(value))
            for key, value in self.category_multipliers.items()
        }
        object.__setattr__(self, "category_multipliers", multipliers)
        object.__setattr__(
            self,
            "tiers",
            tuple(sorted(self.tiers, key=lambda tier: (tier.min_spend, tier.sort_order))),
        )

    def multiplier_for(self, category: Category | str | None) -> Decimal:
        if category is None:
            return Decimal("1")
        if not isinstance(category, Category):
            category = Category(category)
        return self.category_multipliers.get(category, Decimal("1"))


DEFAULT_TIERS = (
    LoyaltyTier(
        name="Bronze",
        min_spend=Decimal("0"),
        max_spend=Decimal("100"),
        benefits={"Points standard": "1 point par euro"},
        sort_order=1,
    ),
    LoyaltyTier(
        name="Argent",
        min_spend=Decimal("100"),
        max_spend=Decimal("500"),
        benefits={
            "Points bonus": "1.5 points par euro",
            "Remise": "5% sur les achats",
        },
        sort_order=2,
    ),
    LoyaltyTier(
        name="Or",
        min_spend=Decimal("500"),
        benefits={
            "Points premium": "2 points par euro",
            "Remise": "10% sur les achats",
            "Livraison gratuite": "Toujours",
        },
        sort_order=3,
    ),
)

DEFAULT_PROGRAM = LoyaltyProgram(
    name="Programme de fidélité",
    points_per_unit=Decimal("1"),
    conversion_rate=100,
    conversion_value=Decimal("5"),
    category_multipliers={"Livres": Decimal("2"), "Vinyles": Decimal("2")},
    points_expiry_days=365,
    tiers=DEFAULT_TIERS,
)


class ProgramStore(Protocol):
    """Persistence collaborator for the loyalty program."""

    def get_program(self) -> LoyaltyProgram | None:
        ...

    def create_program(self, program: LoyaltyProgram) -> LoyaltyProgram:
        """Persist ``program``; raise ProgramAlreadyExistsError if one exists."""
        ...


def ensure_program_exists(
    store: ProgramStore, default: LoyaltyProgram = DEFAULT_PROGRAM
) -> LoyaltyProgram:
    """Create the default program unless one already exists.

    Idempotent: calling it any number of times, including concurrently,
    leaves exactly one program and returns it.
    """
    existing = store.get_program()
    if existing is not None:
        logger.info(f"Loyalty program '{existing.name}' already exists")
        return existing

    try:
        created = store.create_program(default)
    except ProgramAlreadyExistsError:
        logger.info("Loyalty program created concurrently, reading it back")
        program = store.get_program()
        if program is None:
            raise RuntimeError(
                "Program store reported an existing program but returned none"
            )
        return program

    logger.info(
        f"Created loyalty program '{created.name}' with {len(created.tiers)} tiers"
    )
    return created
