"""Tests for AnalyticsConfig."""

from decimal import Decimal

import pytest

from retail_analytics.config import AnalyticsConfig


class TestAnalyticsConfig:
    """Test defaults and validation."""

    def test_defaults(self):
        config = AnalyticsConfig()
        assert config.timezone == "Europe/Paris"
        assert config.overview_window_days == 30
        assert config.segmentation_window_days == 90
        assert config.environment_window_days == 365
        assert config.category_limit == 6
        assert config.total_tolerance == Decimal("0.01")
        assert config.zone.key == "Europe/Paris"

    def test_unknown_time_zone_raises(self):
        with pytest.raises(ValueError, match="Unknown time zone"):
            AnalyticsConfig(timezone="Mars/Olympus")

    def test_non_positive_window_raises(self):
        with pytest.raises(ValueError, match="overview_window_days must be positive"):
            AnalyticsConfig(overview_window_days=0)

    def test_negative_tolerance_raises(self):
        with pytest.raises(ValueError, match="total_tolerance cannot be negative"):
            AnalyticsConfig(total_tolerance=Decimal("-0.01"))


class TestFromEnv:
    """Test environment overrides."""

    def test_unset_keeps_defaults(self):
        assert AnalyticsConfig.from_env({}) == AnalyticsConfig()

    def test_overrides(self):
        config = AnalyticsConfig.from_env(
            {
                "RETAIL_ANALYTICS_TIMEZONE": "UTC",
                "RETAIL_ANALYTICS_OVERVIEW_WINDOW_DAYS": "7",
                "RETAIL_ANALYTICS_TOTAL_TOLERANCE": "0.05",
                "RETAIL_ANALYTICS_REJECT_INCONSISTENT_RECEIPTS": "true",
                "UNRELATED": "ignored",
            }
        )
        assert config.timezone == "UTC"
        assert config.overview_window_days == 7
        assert config.total_tolerance == Decimal("0.05")
        assert config.reject_inconsistent_receipts is True

    def test_invalid_integer_raises(self):
        with pytest.raises(ValueError, match="must be an integer"):
            AnalyticsConfig.from_env({"RETAIL_ANALYTICS_CATEGORY_LIMIT": "six"})

    def test_invalid_decimal_raises(self):
        with pytest.raises(ValueError):
            AnalyticsConfig.from_env({"RETAIL_ANALYTICS_TOTAL_TOLERANCE": "abc"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("RETAIL_ANALYTICS_SEGMENTATION_WINDOW_DAYS", "120")
        assert AnalyticsConfig.from_env().segmentation_window_days == 120
