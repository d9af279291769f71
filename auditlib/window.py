"""
Analysis window for CloudWatch metric queries.

The window is computed once per run and shared by every metric query, so all
resources in a run are measured over an identical interval.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .constants import DEFAULT_LOOKBACK_DAYS, DEFAULT_PERIOD_SECONDS, TIMESTAMP_FORMAT


@dataclass(frozen=True)
class TimeWindow:
    """Start/end bounds (ISO-8601, Z suffix) and aggregation period in seconds."""
    start: str
    end: str
    period: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_timestamp(offset_days: Optional[int] = None, now: Optional[datetime] = None) -> str:
    """
    Get a UTC timestamp with second precision and a literal Z suffix.

    Args:
        offset_days: Days to shift from now (negative for the past)
        now: Reference instant (default: current time)

    Returns:
        Timestamp such as 2026-10-17T08:15:00Z
    """
    instant = now or _utcnow()
    if offset_days:
        instant = instant + timedelta(days=offset_days)
    return format_timestamp(instant)


def format_timestamp(value: Any) -> Optional[str]:
    """
    Render a timestamp in the report format.

    Datetimes are converted to UTC (naive values are assumed to be UTC).
    Strings pass through unchanged and None stays None.
    """
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def compute_window(
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    period: int = DEFAULT_PERIOD_SECONDS,
    now: Optional[datetime] = None
) -> TimeWindow:
    """Compute the shared window ending now and starting lookback_days earlier."""
    instant = now or _utcnow()
    # Truncate first so both bounds are exactly lookback_days apart after formatting
    instant = instant.replace(microsecond=0)
    return TimeWindow(
        start=get_timestamp(-lookback_days, now=instant),
        end=get_timestamp(now=instant),
        period=period,
    )
