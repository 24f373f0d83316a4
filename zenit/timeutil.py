"""Date and time helpers shared by the timer and streak engines."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current wall-clock time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


def exact_seconds_until(deadline: datetime, now: datetime) -> float:
    """Seconds left until deadline, never negative, not rounded."""
    return max(0.0, (deadline - now).total_seconds())


def whole_seconds(seconds: float) -> int:
    """Round a countdown up to whole seconds for display."""
    if seconds <= 0:
        return 0
    return int(math.ceil(seconds))


def seconds_until(deadline: datetime, now: datetime) -> int:
    """Whole seconds left until deadline, rounded up and never negative."""
    return whole_seconds(exact_seconds_until(deadline, now))


def to_local_date(value: Union[datetime, date, str, None]) -> Optional[date]:
    """Reduce a timestamp to its local calendar date.

    Strings are parsed as ISO 8601. Aware datetimes are converted to the
    local zone first so that an event late in the evening UTC lands on the
    user's own day. Returns None if the value cannot be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            try:
                return date.fromisoformat(value)
            except ValueError:
                logger.debug(f"Skipping unparseable timestamp {value!r}")
                return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    logger.debug(f"Skipping timestamp of type {type(value).__name__}")
    return None


def yesterday_of(day: date) -> date:
    return day - timedelta(days=1)


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS.

    Args:
        seconds: Number of seconds

    Returns:
        Formatted time string
    """
    seconds = max(0, seconds)
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes:02d}:{secs:02d}"
