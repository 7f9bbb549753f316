"""Small shared helpers for dates, clocks and rounding."""

import logging
import math
import time
from datetime import date, datetime
from typing import Union

from .exceptions import InvalidDateError

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to a calendar date.

    Args:
        value: Date-like input

    Returns:
        The calendar date

    Raises:
        InvalidDateError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidDateError("Empty date string", value)
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as e:
            raise InvalidDateError(f"Unparseable date: {value!r}", value) from e
    raise InvalidDateError(f"Unsupported date type: {type(value).__name__}", value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def format_time_ago(timestamp_ms: int, now_ms: int) -> str:
    """Format a millisecond timestamp as a short relative string."""
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
