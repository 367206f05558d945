"""Time model — pure HH:MM and duration arithmetic.

No I/O and no state: every function is deterministic given its inputs
(functions that look at the clock accept an explicit `now`).

Malformed input never raises here: parsers log a warning and degrade to
0 / "00:00" so a single bad record cannot break a caller's loop.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from src.data.models import WEEKDAYS

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def time_to_minutes(time_str: str) -> int:
    """Convert "HH:MM" to minutes since midnight ("14:30" -> 870).

    Returns 0 and logs a warning on malformed input.
    """
    if not time_str or not isinstance(time_str, str):
        logger.warning("Invalid time string: %r", time_str)
        return 0

    hours_part, sep, minutes_part = time_str.partition(":")
    try:
        if not sep:
            raise ValueError("missing colon")
        hours = int(hours_part)
        minutes = int(minutes_part)
    except ValueError:
        logger.warning("Invalid time format: %r", time_str)
        return 0

    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to zero-padded "HH:MM" (870 -> "14:30")."""
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes < 0:
        return "00:00"
    minutes = int(minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def calculate_duration(start_time: str, end_time: str) -> int:
    """Minutes between two "HH:MM" strings.

    An end before the start is read as crossing midnight, so
    calculate_duration("23:00", "01:00") == 120.
    """
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    if end < start:
        return MINUTES_PER_DAY - start + end
    return end - start


def format_duration(seconds: int | float, compact: bool = False) -> str:
    """Human-readable duration.

    format_duration(5400)       -> "1 hour 30 minutes"
    format_duration(5400, True) -> "1h 30m"
    """
    if not seconds or seconds < 0:
        return "0m" if compact else "0 minutes"

    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts: list[str] = []
    if compact:
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if secs > 0 and hours == 0:
            parts.append(f"{secs}s")
        return " ".join(parts) or "0m"

    if hours > 0:
        parts.append(f"{hours} {'hour' if hours == 1 else 'hours'}")
    if minutes > 0:
        parts.append(f"{minutes} {'minute' if minutes == 1 else 'minutes'}")
    if secs > 0 and hours == 0 and minutes == 0:
        parts.append(f"{secs} {'second' if secs == 1 else 'seconds'}")
    return " ".join(parts) or "0 minutes"


def format_milliseconds(milliseconds: int | float, compact: bool = False) -> str:
    return format_duration(int(milliseconds // 1000), compact)


def is_time_in_past(date_str: str, time_str: str, now: datetime | None = None) -> bool:
    """True if date_str at time_str is strictly before now."""
    if not date_str or not time_str:
        return False
    now = now or datetime.now()
    try:
        task_dt = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    except ValueError:
        logger.warning("Invalid date/time: %r %r", date_str, time_str)
        return False
    return task_dt < now.replace(tzinfo=None)


def is_task_active(
    date_str: str,
    start_time: str,
    end_time: str,
    now: datetime | None = None,
) -> bool:
    """True if now falls inside [start_time, end_time] on date_str.

    Always False when date_str is not today; multi-day windows are not supported.
    """
    now = now or datetime.now()
    if date_str != now.date().isoformat():
        return False
    current = now.hour * 60 + now.minute
    return time_to_minutes(start_time) <= current <= time_to_minutes(end_time)


def current_date(now: datetime | None = None) -> str:
    return (now or datetime.now()).date().isoformat()


def current_time(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{now.hour:02d}:{now.minute:02d}"


def weekday_name(now: datetime | None = None) -> str:
    """English weekday name ("Monday" … "Sunday"), locale independent."""
    return WEEKDAYS[(now or datetime.now()).weekday()]


def add_minutes_to_time(time_str: str, minutes_to_add: int) -> str:
    """Shift "HH:MM" by minutes, wrapping around the day ("23:30" + 45 -> "00:15")."""
    total = (time_to_minutes(time_str) + minutes_to_add) % MINUTES_PER_DAY
    return minutes_to_time(total)


def is_valid_time_format(time_str: str) -> bool:
    if not time_str or not isinstance(time_str, str):
        return False
    return bool(_TIME_RE.match(time_str))


def get_time_difference(start_time: str, end_time: str) -> str:
    """Compact duration between two "HH:MM" strings, e.g. "1h 30m"."""
    return format_duration(calculate_duration(start_time, end_time) * 60, compact=True)
