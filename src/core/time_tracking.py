"""Time-tracking engine — per-task session lifecycle.

Each task is either Idle (is_tracking=False) or Active (is_tracking=True with
current_session_start set). At most one task in a collection is Active:
start_tracking closes every other open session in the same pass that opens
the new one.

Operations take a task collection and return a new one; input tasks are
never mutated. Timestamps are epoch milliseconds and `now_ms` is injectable.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace

from src.data.models import Session, Task, TimeTracking

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


def stop_task_session(task: Task, now_ms: int | None = None) -> Task:
    """Close the open session on task; returns the task unchanged if Idle."""
    tracking = task.time_tracking
    if not tracking.is_tracking or tracking.current_session_start is None:
        return task

    now_ms = now_millis() if now_ms is None else now_ms
    start = tracking.current_session_start
    duration = max(0, now_ms - start)
    total = tracking.total_time_spent + duration

    return replace(
        task,
        time_tracking=TimeTracking(
            is_tracking=False,
            current_session_start=None,
            total_time_spent=total,
            sessions=[*tracking.sessions, Session(start=start, end=now_ms, duration=duration)],
        ),
        actual_duration=total // 1000,
    )


def start_tracking(tasks: list[Task], task_id: str, now_ms: int | None = None) -> list[Task]:
    """Open a session on task_id, closing whichever other task was Active.

    Starting a task that is already Active leaves its session untouched.
    Unknown task ids leave the collection as it was.
    """
    if not any(t.id == task_id for t in tasks):
        logger.warning("start_tracking: unknown task %s", task_id)
        return list(tasks)

    now_ms = now_millis() if now_ms is None else now_ms
    updated: list[Task] = []
    for task in tasks:
        if task.id == task_id:
            if not task.time_tracking.is_tracking:
                task = replace(
                    task,
                    time_tracking=replace(
                        task.time_tracking,
                        is_tracking=True,
                        current_session_start=now_ms,
                        sessions=list(task.time_tracking.sessions),
                    ),
                )
        elif task.time_tracking.is_tracking:
            logger.info("Stopping tracking on %s to start %s", task.id, task_id)
            task = stop_task_session(task, now_ms)
        updated.append(task)
    return updated


def stop_tracking(tasks: list[Task], task_id: str, now_ms: int | None = None) -> list[Task]:
    """Close the session on task_id. No-op if it is Idle."""
    now_ms = now_millis() if now_ms is None else now_ms
    return [stop_task_session(t, now_ms) if t.id == task_id else t for t in tasks]


def toggle_tracking(tasks: list[Task], task_id: str, now_ms: int | None = None) -> list[Task]:
    task = find_task(tasks, task_id)
    if task is None:
        return list(tasks)
    if task.time_tracking.is_tracking:
        return stop_tracking(tasks, task_id, now_ms)
    return start_tracking(tasks, task_id, now_ms)


def add_manual_time(
    tasks: list[Task],
    task_id: str,
    minutes: int | float,
    now_ms: int | None = None,
) -> list[Task]:
    """Record minutes of untracked work as a synthetic manual session.

    Does not require (or change) an open session.
    """
    now_ms = now_millis() if now_ms is None else now_ms
    duration = int(minutes * 60 * 1000)
    if duration <= 0:
        logger.warning("add_manual_time: ignoring non-positive minutes=%s", minutes)
        return list(tasks)

    updated: list[Task] = []
    for task in tasks:
        if task.id == task_id:
            tracking = task.time_tracking
            total = tracking.total_time_spent + duration
            task = replace(
                task,
                time_tracking=replace(
                    tracking,
                    total_time_spent=total,
                    sessions=[
                        *tracking.sessions,
                        Session(start=now_ms, end=now_ms, duration=duration, manual=True),
                    ],
                ),
                actual_duration=total // 1000,
            )
        updated.append(task)
    return updated


def reset_tracking(tasks: list[Task], task_id: str) -> list[Task]:
    """Discard all tracked time on task_id, including an open session."""
    return [
        replace(t, time_tracking=TimeTracking(), actual_duration=0) if t.id == task_id else t
        for t in tasks
    ]


def elapsed_ms(tracking: TimeTracking, now_ms: int | None = None) -> int:
    """Closed-session total plus the running session, if any. Display only."""
    if not tracking.is_tracking or tracking.current_session_start is None:
        return tracking.total_time_spent
    now_ms = now_millis() if now_ms is None else now_ms
    return tracking.total_time_spent + max(0, now_ms - tracking.current_session_start)


def active_task(tasks: list[Task]) -> Task | None:
    for task in tasks:
        if task.time_tracking.is_tracking:
            return task
    return None


def find_task(tasks: list[Task], task_id: str) -> Task | None:
    for task in tasks:
        if task.id == task_id:
            return task
    return None
