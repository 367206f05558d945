"""
Timetable — Task Board.

Owns the task collection and is its only mutation surface: CRUD, day moves,
completion toggling and the time-tracking operations. Every operation that
touches a task's day or time window goes through the conflict checker first.

Operations report failures as MutationResult instead of raising; callers
surface `error` to the user. Successful mutations are pushed to `on_change`
(persistence, re-evaluation).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable

from src.core import time_tracking
from src.core.conflict_checker import conflict_message, validate_task_time
from src.core.task_validation import sanitize_task_input, validate_task_data
from src.data.models import WEEKDAYS, Task, TimeTracking

logger = logging.getLogger(__name__)

_TIME_FIELDS = ("startTime", "endTime", "day")
_IMMUTABLE_FIELDS = ("id", "createdAt", "timeTracking")


@dataclass
class MutationResult:
    """Outcome of a board operation."""

    success: bool
    error: str | None = None
    task: Task | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskBoard:
    """In-memory task collection with validated mutations."""

    def __init__(
        self,
        tasks: list[Task] | None = None,
        on_change: Callable[[list[Task]], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._tasks: list[Task] = list(tasks or [])
        self._on_change = on_change
        self._clock = clock or _utc_now

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> list[Task]:
        """A copy of the current collection."""
        return list(self._tasks)

    def get_task(self, task_id: str) -> Task | None:
        return time_tracking.find_task(self._tasks, task_id)

    def active_task(self) -> Task | None:
        return time_tracking.active_task(self._tasks)

    def filter_tasks(
        self,
        day: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        completed: bool | None = None,
        search: str | None = None,
    ) -> list[Task]:
        """Tasks matching every given criterion; search looks at title, description and tags."""
        result = list(self._tasks)
        if day:
            result = [t for t in result if t.day == day]
        if category:
            result = [t for t in result if t.category == category]
        if priority:
            result = [t for t in result if t.priority == priority]
        if completed is not None:
            result = [t for t in result if t.completed == completed]
        if search:
            needle = search.lower()
            result = [
                t for t in result
                if needle in t.title.lower()
                or needle in t.description.lower()
                or any(needle in tag.lower() for tag in t.tags)
            ]
        return result

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add_task(self, fields: dict) -> MutationResult:
        """Validate and insert a new task built from camelCase fields."""
        sanitized = sanitize_task_input(fields)

        data_check = validate_task_data(sanitized)
        if not data_check.is_valid:
            return MutationResult(success=False, error="; ".join(data_check.errors.values()))

        stamp = self._iso_now()
        record = {k: v for k, v in sanitized.items() if k not in _IMMUTABLE_FIELDS}
        task = Task.from_dict({
            **record,
            "id": uuid.uuid4().hex,
            "completedAt": stamp if record.get("completed") else None,
            "createdAt": stamp,
            "updatedAt": stamp,
        })

        check = validate_task_time(task, self._tasks)
        if not check.is_valid:
            return MutationResult(success=False, error=conflict_message(check))

        self._commit([*self._tasks, task])
        logger.info("Added task %s (%s %s-%s)", task.id, task.day, task.start_time, task.end_time)
        return MutationResult(success=True, task=task)

    def update_task(self, task_id: str, updates: dict) -> MutationResult:
        """Apply field updates; conflict-checked only when day or time changes."""
        current = self.get_task(task_id)
        if current is None:
            return MutationResult(success=False, error="Task not found")

        sanitized = sanitize_task_input(updates)
        merged = {**current.to_dict(), **sanitized}
        for name in _IMMUTABLE_FIELDS:
            merged[name] = current.to_dict()[name]

        data_check = validate_task_data(merged)
        if not data_check.is_valid:
            return MutationResult(success=False, error="; ".join(data_check.errors.values()))

        if "completed" in sanitized and sanitized["completed"] != current.completed:
            merged["completedAt"] = self._iso_now() if sanitized["completed"] else None
        merged["updatedAt"] = self._iso_now()
        updated = Task.from_dict(merged)

        if any(name in updates for name in _TIME_FIELDS):
            check = validate_task_time(updated, self._tasks, exclude_id=task_id)
            if not check.is_valid:
                return MutationResult(success=False, error=conflict_message(check))

        self._replace(updated)
        return MutationResult(success=True, task=updated)

    def delete_task(self, task_id: str) -> bool:
        remaining = [t for t in self._tasks if t.id != task_id]
        if len(remaining) == len(self._tasks):
            return False
        self._commit(remaining)
        logger.info("Deleted task %s", task_id)
        return True

    def toggle_completion(self, task_id: str) -> MutationResult:
        """Flip completed; completed_at is set on false->true and cleared on true->false."""
        current = self.get_task(task_id)
        if current is None:
            return MutationResult(success=False, error="Task not found")

        stamp = self._iso_now()
        completed = not current.completed
        updated = replace(
            current,
            completed=completed,
            completed_at=stamp if completed else None,
            updated_at=stamp,
        )
        self._replace(updated)
        return MutationResult(success=True, task=updated)

    def move_task(self, task_id: str, target_day: str) -> MutationResult:
        """Reassign a task to another weekday, keeping its time window."""
        current = self.get_task(task_id)
        if current is None:
            return MutationResult(success=False, error="Task not found")
        if current.day == target_day:
            return MutationResult(success=True, task=current)

        if target_day not in WEEKDAYS:
            return MutationResult(success=False, error="Invalid day")

        moved = replace(current, day=target_day, updated_at=self._iso_now())

        check = validate_task_time(moved, self._tasks, exclude_id=task_id)
        if not check.is_valid:
            return MutationResult(success=False, error="Time conflict in target day")

        self._replace(moved)
        return MutationResult(success=True, task=moved)

    def duplicate_task(self, task_id: str, target_day: str | None = None) -> MutationResult:
        """Copy a task with fresh id, no completion and no tracked time.

        Without target_day the copy lands on the original's own slot and is
        not conflict-checked. With target_day it is placed on that weekday and
        rejected if the window is taken there.
        """
        current = self.get_task(task_id)
        if current is None:
            return MutationResult(success=False, error="Task not found")
        if target_day is not None and target_day not in WEEKDAYS:
            return MutationResult(success=False, error="Invalid day")

        stamp = self._iso_now()
        copy = replace(
            current,
            id=uuid.uuid4().hex,
            day=target_day or current.day,
            title=f"{current.title} (Copy)",
            completed=False,
            completed_at=None,
            actual_duration=0,
            time_tracking=TimeTracking(),
            tags=list(current.tags),
            created_at=stamp,
            updated_at=stamp,
        )
        if target_day is not None:
            check = validate_task_time(copy, self._tasks)
            if not check.is_valid:
                return MutationResult(success=False, error="Time conflict in target day")
        self._commit([*self._tasks, copy])
        return MutationResult(success=True, task=copy)

    def bulk_delete(self, task_ids: list[str]) -> int:
        ids = set(task_ids)
        remaining = [t for t in self._tasks if t.id not in ids]
        removed = len(self._tasks) - len(remaining)
        if removed:
            self._commit(remaining)
        return removed

    def bulk_update(self, task_ids: list[str], updates: dict) -> int:
        """Apply the same non-scheduling updates to many tasks.

        Day/time fields are ignored here; use update_task or move_task so the
        conflict check runs per task.
        """
        ids = set(task_ids)
        sanitized = {
            k: v for k, v in sanitize_task_input(updates).items()
            if k not in _TIME_FIELDS and k not in _IMMUTABLE_FIELDS
        }
        stamp = self._iso_now()
        changed = 0
        result: list[Task] = []
        for task in self._tasks:
            if task.id in ids:
                task = Task.from_dict({**task.to_dict(), **sanitized, "updatedAt": stamp})
                changed += 1
            result.append(task)
        if changed:
            self._commit(result)
        return changed

    def clear_completed(self) -> int:
        remaining = [t for t in self._tasks if not t.completed]
        removed = len(self._tasks) - len(remaining)
        if removed:
            self._commit(remaining)
        return removed

    # ------------------------------------------------------------------
    # Time tracking
    # ------------------------------------------------------------------

    def start_tracking(self, task_id: str) -> MutationResult:
        if self.get_task(task_id) is None:
            return MutationResult(success=False, error="Task not found")
        self._commit(time_tracking.start_tracking(self._tasks, task_id, self._now_ms()))
        return MutationResult(success=True, task=self.get_task(task_id))

    def stop_tracking(self, task_id: str) -> MutationResult:
        if self.get_task(task_id) is None:
            return MutationResult(success=False, error="Task not found")
        self._commit(time_tracking.stop_tracking(self._tasks, task_id, self._now_ms()))
        return MutationResult(success=True, task=self.get_task(task_id))

    def toggle_tracking(self, task_id: str) -> MutationResult:
        if self.get_task(task_id) is None:
            return MutationResult(success=False, error="Task not found")
        self._commit(time_tracking.toggle_tracking(self._tasks, task_id, self._now_ms()))
        return MutationResult(success=True, task=self.get_task(task_id))

    def add_manual_time(self, task_id: str, minutes: int | float) -> MutationResult:
        if self.get_task(task_id) is None:
            return MutationResult(success=False, error="Task not found")
        if minutes <= 0:
            return MutationResult(success=False, error="Minutes must be positive")
        self._commit(time_tracking.add_manual_time(self._tasks, task_id, minutes, self._now_ms()))
        return MutationResult(success=True, task=self.get_task(task_id))

    def reset_tracking(self, task_id: str) -> MutationResult:
        if self.get_task(task_id) is None:
            return MutationResult(success=False, error="Task not found")
        self._commit(time_tracking.reset_tracking(self._tasks, task_id))
        logger.info("Reset tracked time on %s", task_id)
        return MutationResult(success=True, task=self.get_task(task_id))

    def stop_active_session(self) -> Task | None:
        """Close whichever session is open (teardown path). Returns the stopped task."""
        active = self.active_task()
        if active is None:
            return None
        self.stop_tracking(active.id)
        logger.info("Force-stopped tracking on %s", active.id)
        return self.get_task(active.id)

    def elapsed_ms(self, task_id: str) -> int:
        task = self.get_task(task_id)
        if task is None:
            return 0
        return time_tracking.elapsed_ms(task.time_tracking, self._now_ms())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    def _iso_now(self) -> str:
        return self._clock().isoformat()

    def _replace(self, updated: Task) -> None:
        self._commit([updated if t.id == updated.id else t for t in self._tasks])

    def _commit(self, tasks: list[Task]) -> None:
        self._tasks = tasks
        if self._on_change is not None:
            try:
                self._on_change(self.tasks)
            except Exception as exc:
                logger.error("Task change hook failed: %s", exc)
