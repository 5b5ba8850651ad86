"""Timestamp utilities for DayMark.

All persisted timestamps are integer milliseconds since the Unix epoch.
"""

from datetime import datetime, timezone
from typing import Optional


def now_ms() -> int:
    """Get current time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def next_timestamp(previous: int) -> int:
    """Get a timestamp strictly greater than ``previous``.

    Uses the current time unless the clock is behind ``previous``.

    Args:
        previous: Last timestamp handed out for the same sequence

    Returns:
        Epoch milliseconds, always > previous
    """
    return max(now_ms(), previous + 1)


def format_timestamp(ts: Optional[int]) -> str:
    """Format epoch milliseconds in the local timezone for display.

    Args:
        ts: Epoch milliseconds or None

    Returns:
        Formatted string "YYYY-MM-DD HH:MM:SS" in local timezone,
        or empty string if ts is None or 0
    """
    if not ts:
        return ""
    utc_dt = datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
    local_dt = utc_dt.astimezone()
    return local_dt.strftime("%Y-%m-%d %H:%M:%S")
