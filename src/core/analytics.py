"""Task analytics — completion rates, time spent and streaks.

Read-only summaries over a list of Task records. Tasks are bucketed by their
calendar `date`; records with an empty or unreadable date are left out of any
date-based figure. Rates are percentages rounded half-up, hours are rounded
to one decimal.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from src.core.time_model import is_time_in_past, is_valid_time_format
from src.data.models import WEEKDAYS, Priority, Task

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
SECONDS_PER_HOUR = 3600

_SLOTS = (
    ("morning", "Morning (5AM-12PM)", 5, 12),
    ("afternoon", "Afternoon (12PM-5PM)", 12, 17),
    ("evening", "Evening (5PM-9PM)", 17, 21),
)
_NIGHT = ("night", "Night (9PM-5AM)")


@dataclass
class CompletionStats:
    completed: int
    pending: int
    total: int
    rate: float


@dataclass
class CategoryStats:
    name: str
    count: int = 0
    completed: int = 0
    total_time: int = 0          # milliseconds tracked
    estimated_time: int = 0      # seconds estimated
    total_time_hours: float = 0.0
    estimated_time_hours: float = 0.0
    completion_rate: int = 0


@dataclass
class PriorityStats:
    total: int = 0
    completed: int = 0
    rate: int = 0


@dataclass
class DayTrend:
    date: str
    day: str
    total: int
    completed: int
    pending: int
    rate: int


@dataclass
class TimeSlot:
    slot: str
    label: str
    count: int = 0
    tasks: list[Task] = field(default_factory=list)


@dataclass
class ProductiveHours:
    time_slots: dict[str, TimeSlot]
    most_productive: TimeSlot


@dataclass
class WeeklySummary:
    total: int
    completed: int
    pending: int
    completion_rate: int
    total_time_hours: float
    average_per_day: float


@dataclass
class DurationStats:
    average_hours: float = 0.0
    average_minutes: int = 0
    total_hours: float = 0.0
    count: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _percent(part: int, whole: int) -> int:
    return int(_round_half_up(part / whole * 100)) if whole else 0


def _task_date(task: Task) -> date | None:
    if not task.date:
        return None
    try:
        return date.fromisoformat(task.date)
    except ValueError:
        logger.debug("Ignoring task %s with unreadable date %r", task.id, task.date)
        return None


def _in_range(tasks: list[Task], start: date, end: date) -> list[Task]:
    picked = []
    for task in tasks:
        day = _task_date(task)
        if day is not None and start <= day <= end:
            picked.append(task)
    return picked


def _tracked_ms(task: Task) -> int:
    return task.time_tracking.total_time_spent or 0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def calculate_completion_rate(tasks: list[Task], start_date: date, end_date: date) -> CompletionStats:
    """Completion figures for tasks dated within [start_date, end_date].

    The rate keeps one decimal, e.g. 2 of 3 done gives 66.7.
    """
    in_range = _in_range(tasks, start_date, end_date)
    completed = sum(1 for t in in_range if t.completed)
    total = len(in_range)
    rate = _round_half_up(completed / total * 100, 1) if total else 0.0
    return CompletionStats(completed=completed, pending=total - completed, total=total, rate=rate)


def get_time_by_category(tasks: list[Task]) -> list[CategoryStats]:
    """Per-category counts and time, in first-seen order."""
    categories: dict[str, CategoryStats] = {}
    for task in tasks:
        name = task.category or "other"
        stats = categories.setdefault(name, CategoryStats(name=name))
        stats.count += 1
        if task.completed:
            stats.completed += 1
        stats.total_time += _tracked_ms(task)
        stats.estimated_time += task.estimated_duration or 0

    for stats in categories.values():
        stats.total_time_hours = _round_half_up(stats.total_time / MS_PER_HOUR, 1)
        stats.estimated_time_hours = _round_half_up(stats.estimated_time / SECONDS_PER_HOUR, 1)
        stats.completion_rate = _percent(stats.completed, stats.count)
    return list(categories.values())


def get_tasks_by_priority(tasks: list[Task]) -> dict[str, PriorityStats]:
    """high/medium/low breakdown. Missing or unknown priorities count as medium."""
    breakdown = {p.value: PriorityStats() for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)}
    for task in tasks:
        stats = breakdown.get(task.priority) or breakdown[Priority.MEDIUM.value]
        stats.total += 1
        if task.completed:
            stats.completed += 1
    for stats in breakdown.values():
        stats.rate = _percent(stats.completed, stats.total)
    return breakdown


def get_productivity_trend(tasks: list[Task], days: int = 7, today: date | None = None) -> list[DayTrend]:
    """One entry per day for the last `days` days, oldest first, ending today."""
    today = today or date.today()
    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        day_str = day.isoformat()
        day_tasks = [t for t in tasks if t.date == day_str]
        completed = sum(1 for t in day_tasks if t.completed)
        trend.append(DayTrend(
            date=day_str,
            day=WEEKDAYS[day.weekday()][:3],
            total=len(day_tasks),
            completed=completed,
            pending=len(day_tasks) - completed,
            rate=_percent(completed, len(day_tasks)),
        ))
    return trend


def get_most_productive_hours(tasks: list[Task]) -> ProductiveHours:
    """Bucket completed tasks by start hour.

    Ties go to the earliest slot in the day (morning first).
    """
    slots = {name: TimeSlot(slot=name, label=label) for name, label, _, _ in _SLOTS}
    slots[_NIGHT[0]] = TimeSlot(slot=_NIGHT[0], label=_NIGHT[1])

    for task in tasks:
        if not task.completed or not is_valid_time_format(task.start_time):
            continue
        hour = int(task.start_time.split(":")[0])
        name = next((n for n, _, lo, hi in _SLOTS if lo <= hour < hi), _NIGHT[0])
        slots[name].count += 1
        slots[name].tasks.append(task)

    best = max(slots.values(), key=lambda s: s.count)
    return ProductiveHours(time_slots=slots, most_productive=best)


def get_weekly_summary(tasks: list[Task], today: date | None = None) -> WeeklySummary:
    """Figures for the week so far; weeks start on Sunday."""
    today = today or date.today()
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    week_tasks = _in_range(tasks, week_start, today)

    completed = sum(1 for t in week_tasks if t.completed)
    total_ms = sum(_tracked_ms(t) for t in week_tasks)
    return WeeklySummary(
        total=len(week_tasks),
        completed=completed,
        pending=len(week_tasks) - completed,
        completion_rate=_percent(completed, len(week_tasks)),
        total_time_hours=_round_half_up(total_ms / MS_PER_HOUR, 1),
        average_per_day=_round_half_up(len(week_tasks) / 7, 1),
    )


def get_overdue_tasks(tasks: list[Task], now: datetime | None = None) -> list[Task]:
    """Open tasks dated before today, or dated today with their end time passed."""
    now = now or datetime.now()
    today = now.date()
    overdue = []
    for task in tasks:
        if task.completed:
            continue
        day = _task_date(task)
        if day is None:
            continue
        if day < today or (day == today and is_time_in_past(task.date, task.end_time, now)):
            overdue.append(task)
    return overdue


def get_average_duration(tasks: list[Task]) -> DurationStats:
    done = [t for t in tasks if t.completed and _tracked_ms(t) > 0]
    if not done:
        return DurationStats()
    total_ms = sum(_tracked_ms(t) for t in done)
    average = total_ms / len(done)
    return DurationStats(
        average_hours=_round_half_up(average / MS_PER_HOUR, 1),
        average_minutes=int(_round_half_up(average / MS_PER_MINUTE)),
        total_hours=_round_half_up(total_ms / MS_PER_HOUR, 1),
        count=len(done),
    )


def get_task_completion_rate(tasks: list[Task]) -> int:
    if not tasks:
        return 0
    return _percent(sum(1 for t in tasks if t.completed), len(tasks))


def get_streak_count(tasks: list[Task], today: date | None = None) -> int:
    """Consecutive days, ending today or yesterday, with at least one completed task."""
    today = today or date.today()
    dates = sorted(
        {d for d in (_task_date(t) for t in tasks if t.completed) if d is not None},
        reverse=True,
    )
    if not dates or dates[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 0
    current = dates[0]
    for day in dates:
        if (current - day).days > 1:
            break
        streak += 1
        current = day
    return streak
