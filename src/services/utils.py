"""
Shared utility functions for cycle-related services.

These utilities are used across multiple service modules to handle common
operations like timestamp normalisation, cycle day calculation and rounding.
"""
import math
from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60

def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)

def ensure_utc(value: datetime) -> datetime:
    """
    Normalise a datetime to aware UTC. Naive values are taken to be UTC.

    Example:
        >>> ensure_utc(datetime(2024, 1, 1)).tzinfo
        datetime.timezone.utc
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 UTC string for storage and responses, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()

def days_between_ceil(start: datetime, end: datetime) -> int:
    """
    Absolute distance between two timestamps in days, rounded up.

    Example:
        >>> days_between_ceil(datetime(2024, 1, 1), datetime(2024, 1, 3, 6))
        3
    """
    seconds = abs((ensure_utc(end) - ensure_utc(start)).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)

def calculate_cycle_day(cycle_start: datetime, target: datetime) -> int:
    """
    1-based day of the cycle that `target` falls on.

    The day is the ceiling of the distance from the cycle start; an event
    logged at the start instant counts as day 1.

    Args:
        cycle_start: Start timestamp of the cycle
        target: Timestamp to locate in the cycle

    Returns:
        Cycle day, at least 1
    """
    return max(1, days_between_ceil(cycle_start, target))

def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round halves away from negative infinity, as client apps do.

    Python's round() uses banker's rounding (round(2.5) == 2); forecasts and
    averages shown to users must round 2.5 to 3.

    Example:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(2.25, 1)
        2.3
    """
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded

def day_key(day: int) -> str:
    """Key of a cycle day slot, e.g. "day14"."""
    return f"day{day}"
