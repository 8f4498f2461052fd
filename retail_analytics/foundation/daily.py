"""Daily time-series bucketing in the business's local time zone.

Receipts are grouped by the calendar day they fall on in a fixed IANA time
zone (``Europe/Paris`` by default), not by their UTC date: a receipt issued
at 23:30 UTC on 31 December belongs to 1 January in Paris.

Only days with at least one receipt are returned. A missing date in the
series means no activity that day; consumers must not assume one point per
day of the window.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo

from retail_analytics.foundation.money import ZERO, percentage
from retail_analytics.foundation.records import Receipt

DEFAULT_TIMEZONE = "Europe/Paris"


@dataclass(frozen=True)
class DailyPoint:
    """Activity for one calendar day.

    Attributes
    ----------
    date:
        ISO 8601 calendar date (``YYYY-MM-DD``) in the business time zone.
    ticket_count:
        Number of receipts issued that day.
    revenue:
        Exact sum of receipt totals.
    identified_count:
        Receipts linked to a known customer.
    identification_rate:
        ``identified_count / ticket_count`` as a percentage.
    """

    date: str
    ticket_count: int
    revenue: Decimal
    identified_count: int = 0
    identification_rate: Decimal = ZERO

    def as_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "ticket_count": self.ticket_count,
            "revenue": float(self.revenue),
            "identified_count": self.identified_count,
            "identification_rate": float(self.identification_rate),
        }


def local_date(receipt: Receipt, tz: ZoneInfo) -> str:
    return receipt.created_at.astimezone(tz).date().isoformat()


def bucket_by_day(
    receipts: Iterable[Receipt], tz: str | ZoneInfo = DEFAULT_TIMEZONE
) -> list[DailyPoint]:
    """Group receipts into one :class:`DailyPoint` per active day.

    Examples
    --------
    >>> from datetime import datetime, timezone
    >>> from decimal import Decimal
    >>> from retail_analytics.foundation.records import Receipt, ReceiptStatus, Store
    >>> store = Store("S1", "Paris Bastille")
    >>> receipts = [
    ...     Receipt("R1", store, Decimal("10.00"), ReceiptStatus.ISSUED,
    ...             datetime(2024, 1, 1, 10, tzinfo=timezone.utc)),
    ...     Receipt("R2", store, Decimal("5.00"), ReceiptStatus.ISSUED,
    ...             datetime(2024, 1, 3, 10, tzinfo=timezone.utc)),
    ... ]
    >>> [point.date for point in bucket_by_day(receipts)]
    ['2024-01-01', '2024-01-03']
    """
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)

    buckets: dict[str, dict[str, object]] = {}
    for receipt in receipts:
        key = local_date(receipt, zone)
        bucket = buckets.setdefault(
            key, {"ticket_count": 0, "revenue": ZERO, "identified_count": 0}
        )
        bucket["ticket_count"] += 1
        bucket["revenue"] += receipt.total
        if receipt.is_identified:
            bucket["identified_count"] += 1

    # ISO dates sort chronologically as strings
    return [
        DailyPoint(
            date=day,
            ticket_count=payload["ticket_count"],
            revenue=payload["revenue"],
            identified_count=payload["identified_count"],
            identification_rate=percentage(
                payload["identified_count"], payload["ticket_count"]
            ),
        )
        for day, payload in sorted(buckets.items())
    ]
