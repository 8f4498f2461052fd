"""Tests for the environmental impact estimator."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from retail_analytics.analyses.environment import (
    estimate_environmental_impact,
    estimate_from_count,
    project_environmental_impact,
)
from retail_analytics.foundation.records import Receipt, ReceiptStatus, Store

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


def _receipt(receipt_id, status, store, days_ago=1):
    return Receipt(
        receipt_id=receipt_id,
        store=store,
        total=Decimal("10.00"),
        status=status,
        created_at=NOW - timedelta(days=days_ago),
    )


class TestEstimateFromCount:
    """Test the linear savings model."""

    def test_thousand_receipts_scenario(self):
        """1000 digital receipts save 3 kg paper, 2.4 kg CO2 and 0.3 tree."""
        impact = estimate_from_count(1000)
        assert impact.paper_saved_kg == Decimal("3.0")
        assert impact.co2_avoided_kg == Decimal("2.4")
        assert impact.trees_equivalent == Decimal("0.3")

    def test_zero(self):
        impact = estimate_from_count(0)
        assert impact.paper_saved_kg == 0
        assert impact.co2_avoided_kg == 0

    def test_negative_count_raises(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            estimate_from_count(-1)


class TestEstimateEnvironmentalImpact:
    """Test estimates over receipts."""

    def test_counts_claimed_receipts_in_window(self):
        bastille = Store("S1", "Paris Bastille")
        lyon = Store("S2", "Lyon Part-Dieu")
        receipts = [
            _receipt("R1", ReceiptStatus.CLAIMED, bastille),
            _receipt("R2", ReceiptStatus.CLAIMED, bastille),
            _receipt("R3", ReceiptStatus.CLAIMED, lyon),
            _receipt("R4", ReceiptStatus.ISSUED, lyon),
            _receipt("R5", ReceiptStatus.CLAIMED, lyon, days_ago=400),
        ]

        impact = estimate_environmental_impact(receipts, now=NOW)

        assert impact.digital_receipts == 3
        assert impact.paper_saved_kg == Decimal("0.009")
        assert [(s.store_name, s.paper_saved_kg) for s in impact.by_store] == [
            ("Paris Bastille", Decimal("0.006")),
            ("Lyon Part-Dieu", Decimal("0.003")),
        ]

    def test_no_digital_receipts(self):
        impact = estimate_environmental_impact([], now=NOW)
        assert impact.digital_receipts == 0
        assert impact.by_store == ()


class TestProjection:
    """Test linear projection of a digital-rate increase."""

    def test_twenty_percent_more(self):
        projected = project_environmental_impact(estimate_from_count(1000), 20)
        assert projected.digital_receipts == 1200
        assert projected.paper_saved_kg == Decimal("3.6")
        assert projected.co2_avoided_kg == Decimal("2.88")

    def test_no_change(self):
        base = estimate_from_count(500)
        assert project_environmental_impact(base, 0).paper_saved_kg == base.paper_saved_kg

    def test_chained_projections_match_combined_one(self):
        """+50% twice equals +125% once; only the displayed count is rounded."""
        twice = project_environmental_impact(
            project_environmental_impact(estimate_from_count(1), 50), 50
        )
        once = project_environmental_impact(estimate_from_count(1), 125)

        assert twice.paper_saved_kg == once.paper_saved_kg == Decimal("0.00675")
        assert twice.co2_avoided_kg == once.co2_avoided_kg
        assert twice.digital_receipts == once.digital_receipts == 2

    def test_below_minus_hundred_raises(self):
        with pytest.raises(ValueError, match="cannot be below -100%"):
            project_environmental_impact(estimate_from_count(10), -150)

    def test_as_dict(self):
        payload = estimate_from_count(1000).as_dict()
        assert payload == {
            "digital_receipts": 1000,
            "paper_saved_kg": 3.0,
            "co2_avoided_kg": 2.4,
            "trees_equivalent": 0.3,
            "by_store": [],
        }
