"""Trailing time windows used as aggregation scopes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from retail_analytics.foundation.records import Receipt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """A time range ``[start, end)``, or ``[start, end]`` when ``include_end``.

    Trailing windows ending "now" include their end so that a receipt
    stamped at the instant of the request is still counted; the previous
    window of a pair is half-open so that the two never overlap.
    """

    start: datetime
    end: datetime
    include_end: bool = False

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Window bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError(
                f"Window end ({self.end}) cannot be before start ({self.start})"
            )

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    @property
    def days(self) -> float:
        return self.length.total_seconds() / 86400

    def contains(self, ts: datetime) -> bool:
        if self.include_end:
            return self.start <= ts <= self.end
        return self.start <= ts < self.end

    def previous(self) -> "TimeWindow":
        """The immediately preceding window of equal length."""
        return TimeWindow(start=self.start - self.length, end=self.start)


def trailing_window(days: int, now: datetime | None = None) -> TimeWindow:
    """Return the window covering the last ``days`` days up to ``now``."""
    if days <= 0:
        raise ValueError(f"Window length must be positive, got {days} days")
    end = now if now is not None else utc_now()
    return TimeWindow(start=end - timedelta(days=days), end=end, include_end=True)


def filter_window(receipts: Iterable[Receipt], window: TimeWindow) -> list[Receipt]:
    return [receipt for receipt in receipts if window.contains(receipt.created_at)]
