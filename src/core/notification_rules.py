"""Notification rule engine — pure per-tick evaluation.

Given an explicit snapshot of the task collection, the notification log, the
settings and the current time, decide which notifications to emit:

- Pass A: upcoming reminders, overdue nags and break reminders
- Pass B: progress milestones (25/50/75/100 % of the estimate)
- Pass C: the once-a-day schedule summary

Nothing here reads the clock or mutates shared state; the scheduler builds a
fresh snapshot at every tick. Each task is evaluated in isolation so one bad
record cannot stop the rest of the tick.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from src.core.time_model import is_task_active, is_valid_time_format, time_to_minutes, weekday_name
from src.core.time_tracking import elapsed_ms
from src.data.models import Notification, NotificationSettings, NotificationType, QuietHours, Task

logger = logging.getLogger(__name__)

OVERDUE_MIN_MINUTES = 5
OVERDUE_MAX_MINUTES = 60
BREAK_INTERVAL_MINUTES = 50
MILESTONE_STEP = 25
MAX_MILESTONE = 100
SUMMARY_START_HOUR = 8
SUMMARY_END_HOUR = 22

_FREQUENCY_MINUTES = {"5min": 5, "10min": 10}


@dataclass
class EngineSnapshot:
    """Everything one evaluation tick may look at."""

    tasks: list[Task]
    notifications: list[Notification]     # newest first
    settings: NotificationSettings
    now: datetime
    summary_hours: tuple[int, int] = (SUMMARY_START_HOUR, SUMMARY_END_HOUR)

    @property
    def now_ms(self) -> int:
        return int(self.now.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Message building
# ---------------------------------------------------------------------------


def build_message(
    kind: NotificationType,
    title: str = "",
    minutes: int = 0,
    milestone: int = 0,
    count: int = 0,
) -> str:
    match kind:
        case NotificationType.REMINDER:
            return f'"{title}" starts in {minutes} minute{"" if minutes == 1 else "s"}'
        case NotificationType.OVERDUE:
            return f'"{title}" was due to start {minutes} minutes ago'
        case NotificationType.PROGRESS:
            if milestone >= MAX_MILESTONE:
                return f'You have used the full estimate for "{title}"'
            return f'{milestone}% of the estimate for "{title}" used'
        case NotificationType.SCHEDULE:
            return f"You have {count} task{'' if count == 1 else 's'} left today"
        case NotificationType.BREAK:
            return "You've been working for a while. Time for a short break!"
        case NotificationType.COMPLETION:
            return f'Completed "{title}"'
        case _:
            raise ValueError(f"Unknown notification type: {kind!r}")


def bypasses_quiet_hours(kind: NotificationType) -> bool:
    """Overdue is the one type allowed to interrupt quiet hours."""
    match kind:
        case NotificationType.OVERDUE:
            return True
        case (
            NotificationType.REMINDER
            | NotificationType.PROGRESS
            | NotificationType.SCHEDULE
            | NotificationType.BREAK
            | NotificationType.COMPLETION
        ):
            return False
        case _:
            raise ValueError(f"Unknown notification type: {kind!r}")


def make_notification(
    kind: NotificationType,
    message: str,
    now_ms: int,
    task: Task | None = None,
    milestone: int | None = None,
) -> Notification:
    return Notification(
        id=uuid.uuid4().hex,
        type=kind,
        message=message,
        timestamp=now_ms,
        task_id=task.id if task is not None else None,
        task_title=task.title if task is not None else "",
        milestone=milestone,
    )


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


def is_quiet_hours(quiet_hours: QuietHours, now: datetime) -> bool:
    """True if now falls in the [start, end) window; wraps past midnight when start > end."""
    if not quiet_hours.enabled:
        return False
    current = now.hour * 60 + now.minute
    start = time_to_minutes(quiet_hours.start)
    end = time_to_minutes(quiet_hours.end)
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def should_send(
    task_id: str | None,
    kind: NotificationType,
    frequency: str,
    notifications: list[Notification],
    now_ms: int,
) -> bool:
    """Throttle repeats of the same task+type.

    First occurrence always passes. "once" never repeats; "5min"/"10min"
    repeat once that long has passed since the newest one. Any other value
    ("until_start", "until_done") repeats on every evaluation.
    """
    previous = [n for n in notifications if n.task_id == task_id and n.type == kind]
    if not previous:
        return True
    if frequency == "once":
        return False
    interval = _FREQUENCY_MINUTES.get(frequency)
    if interval is None:
        return True
    last = max(n.timestamp for n in previous)
    return now_ms - last >= interval * 60_000


def _unread_alerts(task_id: str, notifications: list[Notification]) -> int:
    return sum(
        1 for n in notifications
        if n.task_id == task_id
        and n.type in (NotificationType.REMINDER, NotificationType.OVERDUE)
        and not n.read
    )


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def check_upcoming_tasks(
    snapshot: EngineSnapshot,
    log: list[Notification] | None = None,
) -> list[Notification]:
    """Pass A: reminders before start and overdue nags 5–60 minutes after."""
    log = list(snapshot.notifications) if log is None else log
    settings = snapshot.settings
    today = weekday_name(snapshot.now)
    emitted: list[Notification] = []

    for task in snapshot.tasks:
        try:
            if task.completed or task.day != today:
                continue
            if not is_valid_time_format(task.start_time):
                logger.warning("Skipping task %s: bad start time %r", task.id, task.start_time)
                continue

            start_min = time_to_minutes(task.start_time)
            task_start = snapshot.now.replace(
                hour=start_min // 60, minute=start_min % 60, second=0, microsecond=0,
            )
            time_diff = (task_start - snapshot.now).total_seconds() / 60

            capped = _unread_alerts(task.id, log) >= settings.max_reminders_per_task

            if 0 < time_diff <= settings.reminder_timing and not capped:
                if should_send(task.id, NotificationType.REMINDER,
                               settings.reminder_frequency, log, snapshot.now_ms):
                    emitted.append(_emit(log, make_notification(
                        NotificationType.REMINDER,
                        build_message(NotificationType.REMINDER, task.title, minutes=round(time_diff)),
                        snapshot.now_ms,
                        task,
                    )))

            show_overdue = settings.show_in_progress_overdue or not task.time_tracking.is_tracking
            if -OVERDUE_MAX_MINUTES < time_diff < -OVERDUE_MIN_MINUTES and show_overdue and not capped:
                if should_send(task.id, NotificationType.OVERDUE,
                               settings.overdue_frequency, log, snapshot.now_ms):
                    emitted.append(_emit(log, make_notification(
                        NotificationType.OVERDUE,
                        build_message(NotificationType.OVERDUE, task.title, minutes=abs(round(time_diff))),
                        snapshot.now_ms,
                        task,
                    )))
        except Exception:
            logger.exception("Upcoming-task check failed for task %s", getattr(task, "id", "?"))

    emitted.extend(check_break_reminder(snapshot, log))
    return emitted


def check_break_reminder(
    snapshot: EngineSnapshot,
    log: list[Notification] | None = None,
) -> list[Notification]:
    """At most one break reminder per rolling 50 minutes while a task is in its window."""
    log = list(snapshot.notifications) if log is None else log
    if not snapshot.settings.break_reminders:
        return []

    any_active = False
    for task in snapshot.tasks:
        try:
            if is_task_active(task.date, task.start_time, task.end_time, snapshot.now):
                any_active = True
                break
        except Exception:
            logger.exception("Active-window check failed for task %s", getattr(task, "id", "?"))
    if not any_active:
        return []

    window_start = snapshot.now_ms - BREAK_INTERVAL_MINUTES * 60_000
    recent = any(
        n.type == NotificationType.BREAK and n.timestamp > window_start
        for n in log
    )
    if recent:
        return []

    return [_emit(log, make_notification(
        NotificationType.BREAK,
        build_message(NotificationType.BREAK),
        snapshot.now_ms,
    ))]


def check_progress(
    snapshot: EngineSnapshot,
    log: list[Notification] | None = None,
) -> list[Notification]:
    """Pass B: one notification per 25 % bucket of the estimate, in order."""
    log = list(snapshot.notifications) if log is None else log
    emitted: list[Notification] = []

    for task in snapshot.tasks:
        try:
            tracking = task.time_tracking
            if task.completed or not tracking.is_tracking:
                continue
            if not task.estimated_duration or task.estimated_duration <= 0:
                continue

            elapsed_seconds = elapsed_ms(tracking, snapshot.now_ms) // 1000
            percent = elapsed_seconds / task.estimated_duration * 100
            milestone = min(int(percent // MILESTONE_STEP) * MILESTONE_STEP, MAX_MILESTONE)
            if milestone == 0:
                continue

            reached = [
                n.milestone for n in log
                if n.task_id == task.id
                and n.type == NotificationType.PROGRESS
                and n.milestone is not None
            ]
            if any(m >= milestone for m in reached):
                continue

            emitted.append(_emit(log, make_notification(
                NotificationType.PROGRESS,
                build_message(NotificationType.PROGRESS, task.title, milestone=milestone),
                snapshot.now_ms,
                task,
                milestone=milestone,
            )))
        except Exception:
            logger.exception("Progress check failed for task %s", getattr(task, "id", "?"))

    return emitted


def check_daily_summary(
    snapshot: EngineSnapshot,
    log: list[Notification] | None = None,
) -> list[Notification]:
    """Pass C: one summary per calendar day during daytime hours."""
    log = list(snapshot.notifications) if log is None else log
    if not snapshot.settings.daily_summary:
        return []

    start_hour, end_hour = snapshot.summary_hours
    if not (start_hour <= snapshot.now.hour < end_hour):
        return []

    today = snapshot.now.date()
    tz = snapshot.now.tzinfo
    already_sent = any(
        n.type == NotificationType.SCHEDULE
        and datetime.fromtimestamp(n.timestamp / 1000, tz=tz).date() == today
        for n in log
    )
    if already_sent:
        return []

    weekday = weekday_name(snapshot.now)
    remaining = sum(1 for t in snapshot.tasks if t.day == weekday and not t.completed)
    if remaining == 0:
        return []

    return [_emit(log, make_notification(
        NotificationType.SCHEDULE,
        build_message(NotificationType.SCHEDULE, count=remaining),
        snapshot.now_ms,
    ))]


def evaluate(snapshot: EngineSnapshot) -> list[Notification]:
    """Run all passes; returns new notifications in the order they were produced.

    Each pass sees what earlier passes produced in this tick.
    """
    if not snapshot.settings.enabled:
        return []

    log = list(snapshot.notifications)
    emitted: list[Notification] = []
    for check in (check_upcoming_tasks, check_progress, check_daily_summary):
        try:
            emitted.extend(check(snapshot, log))
        except Exception:
            logger.exception("Rule pass %s failed", check.__name__)
    return emitted


def _emit(log: list[Notification], notification: Notification) -> Notification:
    log.insert(0, notification)
    return notification
