"""
Timetable — Task Conflict Checker.

Detects time conflicts between tasks scheduled on the same weekday before a
task is created, edited or moved to another day.

Tasks are assumed to start and end on the same day (end after start); task
data validation rejects overnight windows before they get here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.core.time_model import time_to_minutes

if TYPE_CHECKING:
    from src.data.models import Task

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a conflict check against the rest of the collection."""

    is_valid: bool
    conflicts: list[Task] = field(default_factory=list)


def overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return start < other_end and end > other_start


def validate_task_time(
    candidate: Task,
    all_tasks: list[Task],
    exclude_id: str | None = None,
) -> ValidationResult:
    """Check whether candidate's window overlaps another task on the same day.

    Args:
        candidate: The task being created, edited or moved.
        all_tasks: The current collection.
        exclude_id: Task id to skip (the task itself when editing).

    Returns:
        ValidationResult listing every conflicting task. Overlaps are reported,
        never raised, so the caller decides whether to block or warn.
    """
    start = time_to_minutes(candidate.start_time)
    end = time_to_minutes(candidate.end_time)

    conflicts: list[Task] = []
    for task in all_tasks:
        if exclude_id is not None and task.id == exclude_id:
            continue
        if task.day != candidate.day:
            continue
        other_start = time_to_minutes(task.start_time)
        other_end = time_to_minutes(task.end_time)
        if overlaps(start, end, other_start, other_end):
            conflicts.append(task)

    if conflicts:
        logger.debug(
            "Conflict for %s %s-%s with %d task(s)",
            candidate.day, candidate.start_time, candidate.end_time, len(conflicts),
        )
    return ValidationResult(is_valid=not conflicts, conflicts=conflicts)


def conflict_message(result: ValidationResult) -> str:
    """Caller-facing summary: "Time conflict with: Standup, Gym"."""
    titles = ", ".join(t.title for t in result.conflicts)
    return f"Time conflict with: {titles}"
