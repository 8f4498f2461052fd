"""Tests for the dashboard service boundary."""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from retail_analytics.analyses.segments import SegmentationStatus
from retail_analytics.config import AnalyticsConfig
from retail_analytics.foundation.records import (
    Category,
    Customer,
    LineItem,
    Receipt,
    ReceiptStatus,
    Store,
)
from retail_analytics.loyalty.program import DEFAULT_TIERS, LoyaltyAccount, LoyaltyProgram
from retail_analytics.loyalty.simulation import SimulationRequest
from retail_analytics.service import DashboardService, DataStatus

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
STORE = Store("S1", "Paris Bastille")


def _receipt(receipt_id, total, days_ago=1, customer_id=None, status=ReceiptStatus.ISSUED):
    return Receipt(
        receipt_id=receipt_id,
        store=STORE,
        total=Decimal(total),
        status=status,
        created_at=NOW - timedelta(days=days_ago),
        line_items=(LineItem(Category("Livres"), "Roman", 1, Decimal(total)),),
        customer=Customer(customer_id) if customer_id else None,
    )


class RecordingFetcher:
    """Serve receipts inside the requested range and record each call."""

    def __init__(self, records):
        self.records = records
        self.calls = []

    def __call__(self, window_start, window_end, filter=None):
        self.calls.append((window_start, window_end, filter))
        return [
            r
            for r in self.records
            if not isinstance(r, Receipt) or window_start <= r.created_at <= window_end
        ]


def _failing_fetcher(window_start, window_end, filter=None):
    raise ConnectionError("database unreachable")


class TestOverview:
    """Test the overview dashboard."""

    def test_ok_dashboard(self):
        fetcher = RecordingFetcher(
            [
                _receipt("R1", "10.00", customer_id="C1", status=ReceiptStatus.CLAIMED),
                _receipt("R2", "30.00", days_ago=3),
                _receipt("P1", "20.00", days_ago=45),
            ]
        )
        dashboard = DashboardService(fetcher).overview(now=NOW)

        assert dashboard.status is DataStatus.OK
        assert dashboard.has_data
        assert dashboard.overview.total_receipts == 2
        assert dashboard.overview.total_revenue == Decimal("40.00")
        assert dashboard.overview.trends.receipts == Decimal("100.00")
        assert [p.ticket_count for p in dashboard.daily] == [1, 1]
        assert dashboard.stores[0].revenue == Decimal("40.00")
        assert dashboard.categories[0].display_name == "Livres"
        assert dashboard.identification.identified_average_basket == Decimal("10.00")
        assert dashboard.environment.digital_receipts == 1

    def test_fetches_current_and_previous_window(self):
        fetcher = RecordingFetcher([_receipt("R1", "10.00")])
        DashboardService(fetcher).overview(now=NOW, filter={"store_id": "S1"})

        start, end, filter = fetcher.calls[0]
        assert start == NOW - timedelta(days=60)
        assert end == NOW
        assert filter == {"store_id": "S1"}

    def test_no_data(self):
        dashboard = DashboardService(RecordingFetcher([])).overview(now=NOW)
        assert dashboard.status is DataStatus.NO_DATA
        assert not dashboard.has_data
        assert dashboard.reason
        assert dashboard.overview.total_receipts == 0

    def test_fetch_failure_is_unavailable(self):
        dashboard = DashboardService(_failing_fetcher).overview(now=NOW)
        assert dashboard.status is DataStatus.UNAVAILABLE
        assert dashboard.reason == "Receipts could not be loaded"
        assert dashboard.daily == ()

    def test_environment_failure_keeps_dashboard(self):
        class FailsSecondCall(RecordingFetcher):
            def __call__(self, window_start, window_end, filter=None):
                if self.calls:
                    raise TimeoutError("slow query")
                return super().__call__(window_start, window_end, filter)

        dashboard = DashboardService(FailsSecondCall([_receipt("R1", "10.00")])).overview(now=NOW)
        assert dashboard.status is DataStatus.OK
        assert dashboard.environment is None

    def test_malformed_rows_are_skipped(self):
        raw_ok = {
            "id": "R9",
            "totalAmount": "12.00",
            "createdAt": (NOW - timedelta(days=1)).isoformat(),
            "status": "EMIS",
            "storeId": "S1",
        }
        fetcher = RecordingFetcher([raw_ok, {"id": "BROKEN"}])
        dashboard = DashboardService(fetcher).overview(now=NOW)

        assert dashboard.overview.total_receipts == 1
        assert dashboard.skipped_records == 1

    def test_wrongly_typed_nested_fields_are_skipped(self):
        created_at = (NOW - timedelta(days=1)).isoformat()

        def raw(receipt_id, **extra):
            record = {
                "id": receipt_id,
                "totalAmount": "10.00",
                "createdAt": created_at,
                "status": "EMIS",
                "storeId": "S1",
                "lineItems": [{"category": "Livres", "quantity": 1, "unitPrice": "10.00"}],
            }
            record.update(extra)
            return record

        fetcher = RecordingFetcher(
            [
                raw("R1"),
                raw("R2", lineItems=[{"category": 42, "quantity": 1, "unitPrice": "10.00"}]),
                raw("R3", lineItems=5),
                raw("R4", lineItems=[{"category": "Livres", "quantity": 2.7, "unitPrice": "10.00"}]),
            ]
        )
        dashboard = DashboardService(fetcher).overview(now=NOW)

        assert dashboard.status is DataStatus.OK
        assert dashboard.overview.total_receipts == 1
        assert dashboard.skipped_records == 3

    def test_config_window_and_limit(self):
        receipts = [_receipt("R1", "10.00", days_ago=2), _receipt("R2", "10.00", days_ago=10)]
        config = AnalyticsConfig(overview_window_days=7, category_limit=0)
        dashboard = DashboardService(RecordingFetcher(receipts), config=config).overview(now=NOW)

        assert dashboard.overview.total_receipts == 1
        assert [m.display_name for m in dashboard.categories] == ["Autres"]

    def test_as_dict_is_json_serialisable(self):
        fetcher = RecordingFetcher([_receipt("R1", "10.00", customer_id="C1")])
        payload = DashboardService(fetcher).overview(now=NOW).as_dict()
        decoded = json.loads(json.dumps(payload))
        assert decoded["status"] == "ok"
        assert decoded["overview"]["total_revenue"] == 10.0


class TestSegments:
    """Test the segmentation endpoint."""

    def test_fetch_failure_is_unavailable(self):
        result = DashboardService(_failing_fetcher).segments(now=NOW)
        assert result.status is SegmentationStatus.UNAVAILABLE
        assert result.reason == "Receipts could not be loaded"

    def test_empty_window(self):
        result = DashboardService(RecordingFetcher([])).segments(now=NOW)
        assert result.status is SegmentationStatus.EMPTY

    def test_segments(self):
        fetcher = RecordingFetcher([_receipt("R1", "20.00", days_ago=5, customer_id="C1")])
        result = DashboardService(fetcher).segments(now=NOW)
        assert result.has_data
        start, end, _ = fetcher.calls[0]
        assert start == NOW - timedelta(days=90)


def _program():
    return LoyaltyProgram(
        name="Programme",
        tiers=DEFAULT_TIERS,
        accounts=(LoyaltyAccount("C1", 200, Decimal("150"), NOW - timedelta(days=3)),),
    )


class TestLoyalty:
    """Test the loyalty endpoints."""

    def test_without_program_source(self):
        result = DashboardService(RecordingFetcher([])).loyalty_stats(now=NOW)
        assert result.status is DataStatus.NO_DATA

    def test_program_not_set_up(self):
        service = DashboardService(RecordingFetcher([]), lambda: None)
        result = service.loyalty_stats(now=NOW)
        assert result.status is DataStatus.NO_DATA
        assert result.reason == "No loyalty program configured"

    def test_program_fetch_failure(self):
        def broken():
            raise RuntimeError("boom")

        result = DashboardService(RecordingFetcher([]), broken).loyalty_stats(now=NOW)
        assert result.status is DataStatus.UNAVAILABLE

    def test_stats(self):
        fetcher = RecordingFetcher([_receipt("R1", "25.00", customer_id="C1")])
        result = DashboardService(fetcher, _program).loyalty_stats(now=NOW)

        assert result.status is DataStatus.OK
        assert result.stats.total_members == 1
        assert result.stats.loyalty_revenue == Decimal("25.00")
        assert result.stats.engagement_rate == Decimal("100.00")

    def test_simulate(self):
        service = DashboardService(RecordingFetcher([]), _program)
        result = service.simulate(SimulationRequest(points_per_unit_change_pct=10), now=NOW)

        assert result.status is DataStatus.OK
        assert result.simulation.incremental_points == 20
        assert result.as_dict()["simulation"]["incremental_points"] == 20

    def test_simulate_receipt_failure(self):
        service = DashboardService(_failing_fetcher, _program)
        result = service.simulate(SimulationRequest(bonus_category="Vinyles"), now=NOW)
        assert result.status is DataStatus.UNAVAILABLE
