"""Tests for the overview aggregator."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from retail_analytics.analyses.overview import (
    OverviewMetrics,
    compute_identification_breakdown,
    compute_overview,
    compute_trend,
    summarise_receipts,
)
from retail_analytics.foundation.daily import bucket_by_day
from retail_analytics.foundation.records import Customer, Receipt, ReceiptStatus, Store

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
STORE = Store("S1", "Paris Bastille")


def _receipt(receipt_id, total, *, days_ago=1.0, customer_id=None, status=ReceiptStatus.ISSUED):
    return Receipt(
        receipt_id=receipt_id,
        store=STORE,
        total=Decimal(total),
        status=status,
        created_at=NOW - timedelta(days=days_ago),
        customer=Customer(customer_id) if customer_id else None,
    )


class TestComputeOverview:
    """Test compute_overview on the current window."""

    def test_identification_rate_scenario(self):
        """7 identified receipts out of 10 give a 70.00 identification rate."""
        receipts = [
            _receipt(f"R{i}", "20.00", customer_id=f"C{i}" if i < 7 else None)
            for i in range(10)
        ]
        overview = compute_overview(receipts, 30, now=NOW)
        assert overview.identification_rate == Decimal("70.00")
        assert overview.active_customers == 7

    def test_headline_figures(self):
        receipts = [
            _receipt("R1", "10.00", customer_id="C1", status=ReceiptStatus.CLAIMED),
            _receipt("R2", "20.00", customer_id="C1"),
            _receipt("R3", "30.01"),
        ]
        overview = compute_overview(receipts, 30, now=NOW)

        assert overview.has_data
        assert overview.total_receipts == 3
        assert overview.total_revenue == Decimal("60.01")
        assert overview.average_basket == Decimal("20.00")
        assert overview.digital_rate == Decimal("33.33")
        assert overview.average_frequency == Decimal("2.00")

    def test_empty_window(self):
        overview = compute_overview([_receipt("R1", "10.00", days_ago=90)], 30, now=NOW)
        assert overview == OverviewMetrics.empty()
        assert not overview.has_data
        assert overview.total_revenue == 0
        assert overview.trends is None

    def test_decimal_exact_sum_over_many_receipts(self):
        """Revenue over 10,000 fractional receipts matches the exact sum."""
        receipts = [
            Receipt(
                receipt_id=f"R{i}",
                store=STORE,
                total=Decimal(i % 997 + 1) / 100 + Decimal("0.09"),
                status=ReceiptStatus.ISSUED,
                created_at=NOW - timedelta(minutes=i),
            )
            for i in range(10_000)
        ]
        expected = sum((r.total for r in receipts), Decimal("0"))

        overview = compute_overview(receipts, 30, now=NOW)
        daily_total = sum((p.revenue for p in bucket_by_day(receipts)), Decimal("0"))

        assert overview.total_receipts == 10_000
        assert overview.total_revenue == expected
        assert daily_total == expected

    def test_boundary_receipt_counts_in_current_window_only(self):
        receipts = [_receipt("R1", "10.00", days_ago=30)]
        overview = compute_overview(receipts, 30, now=NOW)
        assert overview.total_receipts == 1
        assert overview.trends.receipts == 0


class TestTrends:
    """Test trends against the previous window."""

    def test_trends_against_previous_window(self):
        current = [
            _receipt("R1", "25.00", customer_id="C1"),
            _receipt("R2", "25.00", customer_id="C2"),
            _receipt("R3", "25.00"),
            _receipt("R4", "25.00"),
        ]
        previous = [
            _receipt("P1", "25.00", days_ago=45, customer_id="C1"),
            _receipt("P2", "25.00", days_ago=50),
        ]
        overview = compute_overview(current + previous, 30, now=NOW)
        trends = overview.trends

        assert overview.total_receipts == 4
        assert trends.receipts == Decimal("100.00")
        assert trends.revenue == Decimal("100.00")
        assert trends.basket == 0
        assert trends.customers == Decimal("100.00")
        assert trends.identification == 0

    def test_no_previous_data_gives_zero_trends(self):
        overview = compute_overview([_receipt("R1", "10.00")], 30, now=NOW)
        assert overview.trends.receipts == 0
        assert overview.trends.revenue == 0

    @pytest.mark.parametrize("value", [1, 7, Decimal("0.01"), Decimal("123.45")])
    def test_unchanged_value_is_zero(self, value):
        assert compute_trend(value, value) == 0

    @pytest.mark.parametrize("value", [1, Decimal("50.5"), 0])
    def test_zero_previous_is_zero(self, value):
        assert compute_trend(value, 0) == 0

    def test_signed_percent_change(self):
        assert compute_trend(150, 100) == Decimal("50.00")
        assert compute_trend(100, 150) == Decimal("-33.33")


class TestSummaries:
    """Test the period summary and identification breakdown."""

    def test_summary_zero_guards(self):
        summary = summarise_receipts([])
        assert summary.average_basket == 0
        assert summary.identification_rate == 0
        assert summary.average_frequency == 0

    def test_identification_breakdown(self):
        receipts = [
            _receipt("R1", "30.00", customer_id="C1"),
            _receipt("R2", "50.00", customer_id="C1"),
            _receipt("R3", "20.00"),
        ]
        breakdown = compute_identification_breakdown(receipts)

        assert breakdown.identified_revenue_share == Decimal("80.00")
        assert breakdown.identified_average_basket == Decimal("40.00")
        assert breakdown.unidentified_average_basket == Decimal("20.00")
        assert breakdown.identified_frequency == Decimal("2.00")

    def test_as_dict_renders_floats(self):
        overview = compute_overview([_receipt("R1", "10.00")], 30, now=NOW)
        payload = overview.as_dict()
        assert payload["total_revenue"] == 10.0
        assert isinstance(payload["identification_rate"], float)
        assert "trends" in payload
