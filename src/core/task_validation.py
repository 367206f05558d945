"""Task field validation and input sanitising.

Pure business logic: takes raw field dicts (camelCase, as they arrive from a
form or the store) and reports problems as structured results.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field

from src.core.conflict_checker import conflict_message, validate_task_time
from src.core.time_model import is_valid_time_format, time_to_minutes
from src.data.models import DEFAULT_CATEGORIES, DEFAULT_ESTIMATED_DURATION, WEEKDAYS, Priority, Task

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_FREE_TEXT_FIELDS = ("title", "description", "location", "notes")
_RECURRENCE_PATTERNS = ("daily", "weekly", "monthly", "custom")

MAX_TITLE = 200
MAX_DESCRIPTION = 1000
MAX_LOCATION = 200
MAX_NOTES = 2000
MAX_TAGS = 20
MAX_TAG_LENGTH = 50


@dataclass
class DataValidationResult:
    is_valid: bool
    errors: dict[str, str] = field(default_factory=dict)


def validate_task_data(task: dict) -> DataValidationResult:
    """Check required fields, formats and length limits of a task dict."""
    errors: dict[str, str] = {}

    title = task.get("title") or ""
    if not title.strip():
        errors["title"] = "Task title is required"
    elif len(title) > MAX_TITLE:
        errors["title"] = f"Task title must be less than {MAX_TITLE} characters"

    start = task.get("startTime")
    end = task.get("endTime")
    if not start:
        errors["startTime"] = "Start time is required"
    elif not is_valid_time_format(start):
        errors["startTime"] = "Invalid start time format (use HH:MM)"
    if not end:
        errors["endTime"] = "End time is required"
    elif not is_valid_time_format(end):
        errors["endTime"] = "Invalid end time format (use HH:MM)"

    # Overnight windows are rejected: the conflict checker compares same-day minutes.
    if is_valid_time_format(start) and is_valid_time_format(end):
        if time_to_minutes(start) >= time_to_minutes(end):
            errors["time"] = "End time must be after start time"

    day = task.get("day")
    if not day:
        errors["day"] = "Day is required"
    elif day not in WEEKDAYS:
        errors["day"] = "Invalid day"

    if task.get("date") and not _DATE_RE.match(str(task["date"])):
        errors["date"] = "Invalid date format (use YYYY-MM-DD)"

    if task.get("category") and task["category"] not in DEFAULT_CATEGORIES:
        errors["category"] = "Invalid category"

    if task.get("priority") and task["priority"] not in {p.value for p in Priority}:
        errors["priority"] = "Invalid priority level"

    if len(task.get("description") or "") > MAX_DESCRIPTION:
        errors["description"] = f"Description must be less than {MAX_DESCRIPTION} characters"
    if len(task.get("location") or "") > MAX_LOCATION:
        errors["location"] = f"Location must be less than {MAX_LOCATION} characters"
    if len(task.get("notes") or "") > MAX_NOTES:
        errors["notes"] = f"Notes must be less than {MAX_NOTES} characters"

    tags = task.get("tags")
    if isinstance(tags, list):
        if len(tags) > MAX_TAGS:
            errors["tags"] = f"Maximum {MAX_TAGS} tags allowed"
        for index, tag in enumerate(tags):
            if not isinstance(tag, str) or len(tag) > MAX_TAG_LENGTH:
                errors["tags"] = f"Tag {index + 1} is invalid (max {MAX_TAG_LENGTH} characters)"

    recurrence = task.get("recurrence")
    if recurrence and not isinstance(recurrence, dict):
        errors["recurrence"] = "Invalid recurrence"
    else:
        ok, error = validate_recurrence(recurrence)
        if not ok:
            errors["recurrence"] = error

    if task.get("timeTracking") is not None and not validate_time_tracking(task["timeTracking"]):
        errors["timeTracking"] = "Invalid time tracking data"

    return DataValidationResult(is_valid=not errors, errors=errors)


def sanitize_task_input(task: dict) -> dict:
    """Return a cleaned copy: trimmed, HTML-escaped text and normalised tags."""
    sanitized = dict(task)

    for name in _FREE_TEXT_FIELDS:
        value = sanitized.get(name)
        if isinstance(value, str):
            sanitized[name] = html.escape(value.strip(), quote=True).replace("/", "&#x2F;")

    tags = sanitized.get("tags")
    if isinstance(tags, list):
        sanitized["tags"] = [
            t.strip().lower() for t in tags if isinstance(t, str) and t.strip()
        ][:MAX_TAGS]

    if "completed" in sanitized:
        sanitized["completed"] = bool(sanitized["completed"])

    if sanitized.get("estimatedDuration"):
        sanitized["estimatedDuration"] = _to_int(
            sanitized["estimatedDuration"], DEFAULT_ESTIMATED_DURATION,
        )
    if sanitized.get("actualDuration"):
        sanitized["actualDuration"] = _to_int(sanitized["actualDuration"], 0)

    return sanitized


def _to_int(value: object, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def get_validation_errors(
    task: dict,
    existing: list[Task],
    editing_id: str | None = None,
) -> list[str]:
    """Every data error plus a conflict message, as a flat list of strings."""
    errors = list(validate_task_data(task).errors.values())

    candidate = Task(
        id=editing_id or "",
        title=task.get("title") or "",
        day=task.get("day") or "",
        start_time=task.get("startTime") or "",
        end_time=task.get("endTime") or "",
    )
    result = validate_task_time(candidate, existing, editing_id)
    if not result.is_valid:
        errors.append(conflict_message(result))
    return errors


def has_required_fields(task: dict) -> bool:
    """Quick check used for draft saves."""
    return all(task.get(k) for k in ("title", "startTime", "endTime", "day"))


def validate_time_tracking(time_tracking: dict | None) -> bool:
    if not isinstance(time_tracking, dict):
        return False
    total = time_tracking.get("totalTimeSpent")
    return (
        isinstance(time_tracking.get("isTracking"), bool)
        and isinstance(total, (int, float))
        and not isinstance(total, bool)
        and total >= 0
        and isinstance(time_tracking.get("sessions"), list)
    )


def validate_recurrence(recurrence: dict | None) -> tuple[bool, str | None]:
    """Returns (is_valid, error)."""
    if not recurrence or not recurrence.get("enabled"):
        return True, None
    if recurrence.get("pattern") not in _RECURRENCE_PATTERNS:
        return False, "Invalid recurrence pattern"
    interval = recurrence.get("interval")
    if interval is not None and (
        isinstance(interval, bool) or not isinstance(interval, int) or interval < 1
    ):
        return False, "Recurrence interval must be at least 1"
    if recurrence["pattern"] == "weekly" and not recurrence.get("daysOfWeek"):
        return False, "Weekly recurrence requires days of week"
    return True, None
