"""Runtime configuration of the aggregation core.

Defaults match the back office's dashboards. Each value can be overridden
with a ``RETAIL_ANALYTICS_*`` environment variable through
:meth:`AnalyticsConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from retail_analytics.foundation.money import to_decimal

ENV_PREFIX = "RETAIL_ANALYTICS_"


@dataclass(frozen=True)
class AnalyticsConfig:
    """Configuration for window lengths, time zone and presentation limits.

    Attributes
    ----------
    timezone:
        IANA zone used for calendar-day boundaries.
    overview_window_days:
        Length of the overview window (trends use the window before it).
    segmentation_window_days:
        Receipts considered for customer segmentation.
    environment_window_days:
        Trailing window for environmental savings.
    engagement_window_days:
        Loyalty accounts active within this many days count as engaged.
    loyalty_revenue_window_days:
        Window for revenue attributed to loyalty members.
    category_limit:
        Categories shown before the tail is merged into "Autres".
    total_tolerance:
        Accepted gap between a receipt total and its line items.
    reject_inconsistent_receipts:
        Skip receipts whose total and line items disagree.
    """

    timezone: str = "Europe/Paris"
    overview_window_days: int = 30
    segmentation_window_days: int = 90
    environment_window_days: int = 365
    engagement_window_days: int = 60
    loyalty_revenue_window_days: int = 30
    category_limit: int = 6
    total_tolerance: Decimal = Decimal("0.01")
    reject_inconsistent_receipts: bool = False

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {self.timezone!r}") from exc
        for name in (
            "overview_window_days",
            "segmentation_window_days",
            "environment_window_days",
            "engagement_window_days",
            "loyalty_revenue_window_days",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.category_limit < 0:
            raise ValueError(
                f"category_limit cannot be negative, got {self.category_limit}"
            )
        if self.total_tolerance < 0:
            raise ValueError(
                f"total_tolerance cannot be negative, got {self.total_tolerance}"
            )

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AnalyticsConfig":
        """Build a config from ``RETAIL_ANALYTICS_<FIELD>`` variables.

        Unset variables keep their default.

        >>> AnalyticsConfig.from_env({"RETAIL_ANALYTICS_OVERVIEW_WINDOW_DAYS": "7"}).overview_window_days
        7
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for field_def in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{field_def.name.upper()}")
            if raw is None:
                continue
            default = field_def.default
            if isinstance(default, bool):
                overrides[field_def.name] = raw.strip().lower() in (
                    "1",
                    "true",
                    "yes",
                    "on",
                )
            elif isinstance(default, int):
                try:
                    overrides[field_def.name] = int(raw)
                except ValueError as exc:
                    raise ValueError(
                        f"{ENV_PREFIX}{field_def.name.upper()} must be an integer, got {raw!r}"
                    ) from exc
            elif isinstance(default, Decimal):
                overrides[field_def.name] = to_decimal(raw)
            else:
                overrides[field_def.name] = raw
        return cls(**overrides)
