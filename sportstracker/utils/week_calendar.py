"""
Week arithmetic for the accountability engine.

Weeks run Monday 00:00:00.000 to Sunday 23:59:59.999 in naive local time.
All functions are pure; callers pass ``now`` explicitly.
"""

from datetime import datetime, timedelta
from typing import Tuple

MONDAY = 0
SUNDAY = 6
REMINDER_HOUR = 18

_WEEK = timedelta(days=7)
_WEEK_END_OFFSET = timedelta(days=6, hours=23, minutes=59, seconds=59, milliseconds=999)


def week_start(date: datetime) -> datetime:
    """Return Monday 00:00:00.000 of the week containing *date*."""
    # weekday() puts Sunday at 6, i.e. the last day of a Monday-started week
    monday = date - timedelta(days=date.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def week_end(date: datetime) -> datetime:
    """Return Sunday 23:59:59.999 of the week containing *date*."""
    return week_start(date) + _WEEK_END_OFFSET


def week_bounds(date: datetime) -> Tuple[datetime, datetime]:
    """Return the half-open ``[start, start + 7 days)`` window for *date*."""
    start = week_start(date)
    return start, start + _WEEK


def week_id(date: datetime) -> str:
    """Stable week key: the ISO calendar date of the week's Monday."""
    return week_start(date).date().isoformat()


def previous_week_start(now: datetime) -> datetime:
    """Monday of the week that contains the day before *now*."""
    return week_start(now - timedelta(days=1))


def is_penalty_day(now: datetime) -> bool:
    """Penalties for the week just ended are assessed on Mondays."""
    return now.weekday() == MONDAY


def is_reminder_window(now: datetime) -> bool:
    """True on Sunday from 18:00 onward ("last chance" to reach the goal)."""
    return now.weekday() == SUNDAY and now.hour >= REMINDER_HOUR


def format_duration(minutes: int) -> str:
    """Render minutes as ``45 min``, ``2h`` or ``1h 30m``."""
    if minutes < 0:
        raise ValueError(f"minutes must be non-negative, got {minutes}")
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"
