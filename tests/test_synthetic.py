"""Tests for the sample data generator and end-to-end aggregation on it."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from retail_analytics.analyses.dimensions import aggregate_by_category, aggregate_by_store
from retail_analytics.analyses.overview import compute_overview
from retail_analytics.foundation.daily import bucket_by_day
from retail_analytics.service import DashboardService, DataStatus
from retail_analytics.synthetic import (
    DEFAULT_CATEGORIES,
    ScenarioConfig,
    check_identified_share,
    check_no_duplicate_receipts,
    check_status_mix,
    check_totals_match_line_items,
    generate_customers,
    generate_receipts,
    generate_stores,
)

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
START = NOW - timedelta(days=30)


@pytest.fixture(scope="module")
def receipts():
    stores = generate_stores()
    customers = generate_customers(50, NOW - timedelta(days=365), NOW, seed=7)
    return generate_receipts(
        2000, stores, customers, START, NOW, scenario=ScenarioConfig(seed=42)
    )


class TestGenerator:
    """Test generated data shape."""

    def test_stores(self):
        stores = generate_stores()
        assert len(stores) == 4
        assert len({s.store_id for s in stores}) == 4
        assert len(generate_stores(6)) == 6

    def test_customers(self):
        customers = generate_customers(10, START, NOW, seed=1)
        assert len(customers) == 10
        assert all(START <= c.created_at <= NOW for c in customers)
        assert generate_customers(0, START, NOW) == []

    def test_same_seed_same_data(self):
        stores = generate_stores()
        first = generate_receipts(50, stores, [], START, NOW, scenario=ScenarioConfig(seed=3))
        second = generate_receipts(50, stores, [], START, NOW, scenario=ScenarioConfig(seed=3))
        assert first == second

    def test_receipts_within_range(self, receipts):
        assert len(receipts) == 2000
        assert all(START <= r.created_at <= NOW for r in receipts)
        assert {i.category.label for r in receipts for i in r.line_items} <= set(
            DEFAULT_CATEGORIES
        )

    def test_invalid_scenario(self):
        with pytest.raises(ValueError, match="identified_share"):
            ScenarioConfig(identified_share=1.5)

    def test_requires_a_store(self):
        with pytest.raises(ValueError, match="at least one store"):
            generate_receipts(1, [], [], START, NOW)


class TestValidation:
    """Test the validation checks on generated receipts."""

    def test_checks_pass(self, receipts):
        assert check_totals_match_line_items(receipts).ok
        assert check_no_duplicate_receipts(receipts).ok
        assert check_identified_share(receipts, 0.8, tolerance=0.05).ok
        assert check_status_mix(receipts).ok

    def test_duplicates_detected(self, receipts):
        assert not check_no_duplicate_receipts([receipts[0], receipts[0]]).ok


class TestAggregationInvariants:
    """Cross-aggregator invariants on a realistic data set."""

    def test_revenue_agrees_across_aggregators(self, receipts):
        overview = compute_overview(receipts, 30, now=NOW)
        store_total = sum((m.revenue for m in aggregate_by_store(receipts)), Decimal("0"))
        daily_total = sum((p.revenue for p in bucket_by_day(receipts)), Decimal("0"))
        category_total = sum(
            (m.revenue for m in aggregate_by_category(receipts, 3)), Decimal("0")
        )

        assert overview.total_receipts == len(receipts)
        assert overview.total_revenue == store_total == daily_total
        # Totals equal line items for generated data
        assert category_total == overview.total_revenue

    def test_service_on_generated_data(self, receipts):
        def fetch(window_start, window_end, filter=None):
            return [r for r in receipts if window_start <= r.created_at <= window_end]

        dashboard = DashboardService(fetch).overview(now=NOW)
        assert dashboard.status is DataStatus.OK
        assert len(dashboard.categories) == 7
        assert dashboard.categories[-1].display_name == "Autres"
