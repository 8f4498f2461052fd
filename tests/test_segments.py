"""Tests for rule-based customer segmentation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from retail_analytics.analyses.segments import (
    Segment,
    SegmentationRules,
    SegmentationStatus,
    build_customer_profiles,
    segment_customers,
)
from retail_analytics.foundation.records import (
    Category,
    Customer,
    LineItem,
    Receipt,
    ReceiptStatus,
    Store,
)

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
STORE = Store("S1", "Paris Bastille")


def _receipt(receipt_id, customer_id, days_ago, total="100.00", category="Livres"):
    return Receipt(
        receipt_id=receipt_id,
        store=STORE,
        total=Decimal(total),
        status=ReceiptStatus.ISSUED,
        created_at=NOW - timedelta(days=days_ago),
        line_items=(LineItem(Category(category), "item", 1, Decimal(total)),),
        customer=Customer(customer_id) if customer_id else None,
    )


def _champion_explorer():
    """Five 100.00 visits, eight days apart on average, across three categories."""
    categories = ["Livres", "Vinyles", "Gaming", "Livres", "Vinyles"]
    return [
        _receipt(f"C1-{i}", "C1", days_ago, category=categories[i])
        for i, days_ago in enumerate([50, 40, 30, 20, 10])
    ]


class TestCustomerProfiles:
    """Test profile construction."""

    def test_profile_fields(self):
        (profile,) = build_customer_profiles(_champion_explorer())
        assert profile.customer_id == "C1"
        assert profile.visit_count == 5
        assert profile.total_spend == Decimal("500.00")
        assert profile.average_basket == Decimal("100")
        assert profile.distinct_categories == 3
        assert profile.days_active == 40.0
        assert profile.avg_days_between_visits == 8.0

    def test_single_visit_counts_one_active_day(self):
        (profile,) = build_customer_profiles([_receipt("R1", "C1", 5)])
        assert profile.days_active == 1.0
        assert profile.avg_days_between_visits == 1.0

    def test_anonymous_receipts_are_ignored(self):
        assert build_customer_profiles([_receipt("R1", None, 5)]) == []


class TestSegmentCustomers:
    """Test segment membership."""

    def test_customer_can_be_in_several_segments(self):
        """A Champion who shops three categories is also an Explorer."""
        result = segment_customers(_champion_explorer(), now=NOW)

        champions = result.get(Segment.CHAMPIONS)
        explorers = result.get(Segment.EXPLORERS)
        assert champions.member_ids == ("C1",)
        assert explorers.member_ids == ("C1",)
        assert champions.revenue == explorers.revenue == Decimal("500.00")
        assert champions.average_basket == explorers.average_basket == Decimal("100.00")
        assert champions.average_days_between_visits == Decimal("8.0")
        assert result.get(Segment.LOYAL) is None
        assert result.get(Segment.OCCASIONAL) is None

    def test_recency_rules(self):
        receipts = _champion_explorer() + [
            _receipt("C2-0", "C2", 60, total="20.00"),
            _receipt("C3-0", "C3", 5, total="20.00"),
        ]
        result = segment_customers(receipts, now=NOW)

        assert result.get(Segment.AT_RISK).member_ids == ("C2",)
        assert result.get(Segment.NEW).member_ids == ("C3",)
        assert result.get(Segment.OCCASIONAL).member_ids == ("C2", "C3")

    def test_segments_in_declaration_order(self):
        receipts = _champion_explorer() + [_receipt("C2-0", "C2", 60, total="20.00")]
        result = segment_customers(receipts, now=NOW)
        slugs = [summary.segment.value for summary in result.segments]
        assert slugs == ["champions", "occasionnels", "a-risque", "explorateurs"]

    def test_loyal_basket_bounds_are_inclusive(self):
        receipts = [
            _receipt(f"R{i}", "C1", days_ago, total="70.00")
            for i, days_ago in enumerate([25, 15, 5])
        ]
        result = segment_customers(receipts, now=NOW)
        assert result.get(Segment.LOYAL).member_ids == ("C1",)

    def test_custom_rules(self):
        rules = SegmentationRules(champion_min_visits=10)
        result = segment_customers(_champion_explorer(), now=NOW, rules=rules)
        assert result.get(Segment.CHAMPIONS) is None
        assert result.get(Segment.EXPLORERS) is not None

    def test_identification_rate_is_always_full(self):
        result = segment_customers(_champion_explorer(), now=NOW)
        assert all(s.identification_rate == 100 for s in result.segments)


class TestSegmentationResult:
    """Test the tagged result."""

    def test_no_receipts_is_empty(self):
        result = segment_customers([], now=NOW)
        assert result.status is SegmentationStatus.EMPTY
        assert not result.has_data
        assert result.segments == ()

    def test_anonymous_only_is_empty(self):
        result = segment_customers([_receipt("R1", None, 5)], now=NOW)
        assert result.status is SegmentationStatus.EMPTY

    def test_as_dict(self):
        payload = segment_customers(_champion_explorer(), now=NOW).as_dict()
        assert payload["status"] == "segments"
        champions = payload["segments"][0]
        assert champions["slug"] == "champions"
        assert champions["name"] == "Champions"
        assert champions["member_ids"] == ["C1"]
        assert champions["revenue"] == 500.0
