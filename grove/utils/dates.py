"""Duration parsing and age formatting utilities."""

import time
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60

_UNIT_DAYS = {
    "d": 1,
    "w": 7,
    "m": 30,
}


def parse_duration(value: str) -> int:
    """
    Parse a human-friendly duration such as ``30d``, ``2w`` or ``6m``.

    Args:
        value: Number followed by a unit (d = days, w = weeks, m = 30-day months)

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the value is empty, malformed or not positive
    """
    value = value.strip().lower()
    if not value:
        raise ValueError("duration cannot be empty")
    if len(value) < 2:
        raise ValueError(f"invalid duration: {value}")

    number, unit = value[:-1], value[-1]
    if unit not in _UNIT_DAYS:
        raise ValueError(f"unknown duration unit: {unit} (use d, w, or m)")
    try:
        amount = int(number)
    except ValueError:
        raise ValueError(f"invalid duration number: {value}") from None
    if amount <= 0:
        raise ValueError(f"duration must be positive: {value}")

    return amount * _UNIT_DAYS[unit] * SECONDS_PER_DAY


def format_age(timestamp: int, now: Optional[float] = None) -> str:
    """
    Format how long ago a Unix timestamp was.

    Args:
        timestamp: Unix time; 0 means unknown
        now: Reference time (defaults to the current time)

    Returns:
        Text like "3 days ago", or an empty string for unknown timestamps
    """
    if not timestamp:
        return ""
    if now is None:
        now = time.time()

    days = int((now - timestamp) // SECONDS_PER_DAY)
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "1 week ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 60:
        return "1 month ago"
    if days < 365:
        return f"{days // 30} months ago"
    if days < 730:
        return "1 year ago"
    return f"{days // 365} years ago"
