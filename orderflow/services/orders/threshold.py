"""
Ready-to-ship threshold evaluation.

A line is ready to ship when its estimated ship date falls between today and
``threshold_days`` days from today, inclusive, compared at calendar-day
granularity. "Today" is always supplied by the caller (usually from a
``Clock``) so the evaluation is deterministic.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional, Protocol

from orderflow.core.config import get_settings
from orderflow.schemas.orders import to_calendar_date

DEFAULT_SHIP_THRESHOLD_DAYS = 3
DEFAULT_SHIP_QUEUE_LABEL = "Ready to Ship"


class Clock(Protocol):
    """Source of the current date and time."""

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Clock backed by the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a given instant, for tests and replays."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def today(self) -> date:
        return self.instant.date()


def is_within_ship_threshold(
    estimated_ship_date: Any,
    threshold_days: Optional[int],
    today: date,
) -> bool:
    """
    Check if a ship date falls inside the ready-to-ship window.

    Args:
        estimated_ship_date: Ship date (date, datetime, ISO string or None)
        threshold_days: Window length in days; None uses the default of 3
        today: Current calendar day

    Returns:
        True when 0 <= days until shipping <= threshold_days. Absent,
        unparseable or past dates are never within the threshold.
    """
    ship_date = to_calendar_date(estimated_ship_date)
    if ship_date is None:
        return False

    if threshold_days is None:
        threshold_days = DEFAULT_SHIP_THRESHOLD_DAYS

    diff_days = (ship_date - to_calendar_date(today)).days
    return 0 <= diff_days <= threshold_days


@dataclass(frozen=True)
class ShipQueueConfig:
    """Per-manufacturer ready-to-ship window and queue labels."""

    threshold_days: int = DEFAULT_SHIP_THRESHOLD_DAYS
    label: str = DEFAULT_SHIP_QUEUE_LABEL
    label_zh: Optional[str] = None

    @classmethod
    def default(cls) -> "ShipQueueConfig":
        """Configuration used when a manufacturer has none stored."""
        settings = get_settings()
        return cls(
            threshold_days=settings.default_ship_threshold_days,
            label=settings.default_ship_queue_label,
        )

    @classmethod
    def from_manufacturer(cls, manufacturer: Any) -> "ShipQueueConfig":
        """
        Read queue settings from a manufacturer row.

        Args:
            manufacturer: Row exposing ``ship_queue_days``, ``ship_queue_name``
                and ``ship_queue_name_zh``, or None

        Returns:
            ShipQueueConfig, with defaults for absent or non-positive values
        """
        fallback = cls.default()
        if manufacturer is None:
            return fallback

        days = getattr(manufacturer, "ship_queue_days", None)
        try:
            days = int(days) if days is not None else None
        except (TypeError, ValueError):
            days = None
        if days is None or days <= 0:
            days = fallback.threshold_days

        label = (getattr(manufacturer, "ship_queue_name", None) or "").strip()
        label_zh = (getattr(manufacturer, "ship_queue_name_zh", None) or "").strip()

        return cls(
            threshold_days=days,
            label=label or fallback.label,
            label_zh=label_zh or None,
        )

    def is_ready(self, estimated_ship_date: Any, today: date) -> bool:
        return is_within_ship_threshold(estimated_ship_date, self.threshold_days, today)
