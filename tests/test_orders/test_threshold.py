"""
Tests for the ready-to-ship threshold and per-manufacturer queue settings.
"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from orderflow.services.orders.threshold import (
    DEFAULT_SHIP_QUEUE_LABEL,
    DEFAULT_SHIP_THRESHOLD_DAYS,
    FixedClock,
    ShipQueueConfig,
    SystemClock,
    is_within_ship_threshold,
)


# ============================================================================
# is_within_ship_threshold
# ============================================================================


class TestIsWithinShipThreshold:
    """Test the inclusive [today, today + N] window."""

    @pytest.mark.parametrize(
        "offset_days,threshold,expected",
        [
            (0, 3, True),
            (3, 3, True),
            (4, 3, False),
            (-1, 3, False),
            (0, 0, True),
            (1, 0, False),
            (10, 10, True),
            (11, 10, False),
        ],
    )
    def test_window_boundaries(self, today, offset_days, threshold, expected):
        ship_date = today + timedelta(days=offset_days)

        assert is_within_ship_threshold(ship_date, threshold, today) is expected

    @pytest.mark.parametrize("threshold", [0, 1, 3, 30, None])
    def test_missing_date_is_never_ready(self, today, threshold):
        assert is_within_ship_threshold(None, threshold, today) is False

    def test_missing_threshold_uses_default(self, today):
        assert DEFAULT_SHIP_THRESHOLD_DAYS == 3
        assert is_within_ship_threshold(today + timedelta(days=3), None, today)
        assert not is_within_ship_threshold(today + timedelta(days=4), None, today)

    def test_time_of_day_is_ignored(self, today):
        late_in_day = datetime(2026, 3, 13, 23, 59, tzinfo=timezone.utc)

        assert is_within_ship_threshold(late_in_day, 3, today) is True

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-03-12", True),
            ("2026-03-12T08:30:00Z", True),
            ("2026-03-20", False),
            ("not a date", False),
            ("", False),
            (12345, False),
        ],
    )
    def test_raw_inputs(self, today, value, expected):
        assert is_within_ship_threshold(value, 3, today) is expected


# ============================================================================
# Clocks
# ============================================================================


def test_fixed_clock():
    instant = datetime(2026, 3, 10, 23, 0, tzinfo=timezone.utc)
    clock = FixedClock(instant)

    assert clock.now() is instant
    assert clock.today() == date(2026, 3, 10)


def test_system_clock_is_utc():
    now = SystemClock().now()

    assert now.tzinfo is timezone.utc
    assert SystemClock().today() in {now.date(), now.date() + timedelta(days=1)}


# ============================================================================
# ShipQueueConfig
# ============================================================================


class TestShipQueueConfig:
    """Test per-manufacturer queue configuration."""

    def test_default(self):
        config = ShipQueueConfig.default()

        assert config.threshold_days == 3
        assert config.label == DEFAULT_SHIP_QUEUE_LABEL
        assert config.label_zh is None

    def test_missing_manufacturer_uses_default(self):
        assert ShipQueueConfig.from_manufacturer(None) == ShipQueueConfig.default()

    def test_reads_manufacturer_settings(self):
        manufacturer = SimpleNamespace(
            ship_queue_days=5,
            ship_queue_name="  Outbound  ",
            ship_queue_name_zh="待发货",
        )

        config = ShipQueueConfig.from_manufacturer(manufacturer)

        assert config == ShipQueueConfig(
            threshold_days=5, label="Outbound", label_zh="待发货"
        )

    @pytest.mark.parametrize("days", [None, 0, -2, "abc"])
    def test_invalid_days_fall_back(self, days):
        manufacturer = SimpleNamespace(ship_queue_days=days, ship_queue_name=None)

        config = ShipQueueConfig.from_manufacturer(manufacturer)

        assert config.threshold_days == 3

    def test_blank_labels_fall_back(self):
        manufacturer = SimpleNamespace(
            ship_queue_days="7", ship_queue_name="   ", ship_queue_name_zh=""
        )

        config = ShipQueueConfig.from_manufacturer(manufacturer)

        assert config.threshold_days == 7
        assert config.label == DEFAULT_SHIP_QUEUE_LABEL
        assert config.label_zh is None

    def test_is_ready(self, today):
        config = ShipQueueConfig(threshold_days=2)

        assert config.is_ready(today + timedelta(days=2), today) is True
        assert config.is_ready(today + timedelta(days=3), today) is False
        assert config.is_ready(None, today) is False
