"""
Timetable — Data Models.

Tasks live on a weekly grid and carry their own time-tracking record.
Notifications are the output of the rule engine and of a few user actions.

Records are stored as camelCase dicts (the persisted format); the dataclasses
here use snake_case and convert at the edge via to_dict/from_dict.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
DEFAULT_CATEGORIES = ("work", "personal", "fitness", "learning", "other")
DEFAULT_ESTIMATED_DURATION = 3600  # seconds

_HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def _as_int(value: object, default: int | None) -> int | None:
    """Coerce a stored number, falling back to default for anything unreadable."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: object) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(str, Enum):
    REMINDER = "reminder"
    OVERDUE = "overdue"
    PROGRESS = "progress"
    SCHEDULE = "schedule"
    BREAK = "break"
    COMPLETION = "completion"


# ---------------------------------------------------------------------------
# Time tracking
# ---------------------------------------------------------------------------


@dataclass
class Session:
    """One closed tracking interval. Timestamps are epoch milliseconds."""

    start: int
    end: int
    duration: int             # milliseconds
    manual: bool = False

    def to_dict(self) -> dict:
        d = {"start": self.start, "end": self.end, "duration": self.duration}
        if self.manual:
            d["manual"] = True
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        return cls(
            start=_as_int(data.get("start"), 0),
            end=_as_int(data.get("end"), 0),
            duration=max(0, _as_int(data.get("duration"), 0)),
            manual=bool(data.get("manual", False)),
        )


@dataclass
class TimeTracking:
    """Per-task tracking state.

    current_session_start is set iff is_tracking; total_time_spent only counts
    closed sessions (milliseconds).
    """

    is_tracking: bool = False
    current_session_start: int | None = None
    total_time_spent: int = 0
    sessions: list[Session] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "isTracking": self.is_tracking,
            "currentSessionStart": self.current_session_start,
            "totalTimeSpent": self.total_time_spent,
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> TimeTracking:
        if not isinstance(data, dict):
            return cls()
        start = _as_int(data.get("currentSessionStart"), None)
        is_tracking = bool(data.get("isTracking", False)) and start is not None
        return cls(
            is_tracking=is_tracking,
            current_session_start=start if is_tracking else None,
            total_time_spent=max(0, _as_int(data.get("totalTimeSpent"), 0)),
            sessions=[
                Session.from_dict(s) for s in _as_list(data.get("sessions"))
                if isinstance(s, dict)
            ],
        )


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


@dataclass
class Task:
    """A scheduled block on the weekly grid."""

    id: str
    title: str
    day: str                          # "Monday" … "Sunday"
    start_time: str                   # "HH:MM"
    end_time: str                     # "HH:MM"
    date: str = ""                    # "YYYY-MM-DD"
    description: str = ""
    location: str = ""
    notes: str = ""
    priority: str = Priority.MEDIUM.value
    category: str = "personal"
    completed: bool = False
    completed_at: str | None = None
    estimated_duration: int = DEFAULT_ESTIMATED_DURATION   # seconds
    actual_duration: int = 0                               # seconds
    time_tracking: TimeTracking = field(default_factory=TimeTracking)
    tags: list[str] = field(default_factory=list)
    attachments: list = field(default_factory=list)
    recurrence: dict | None = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "day": self.day,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "description": self.description,
            "location": self.location,
            "notes": self.notes,
            "priority": self.priority,
            "category": self.category,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "estimatedDuration": self.estimated_duration,
            "actualDuration": self.actual_duration,
            "timeTracking": self.time_tracking.to_dict(),
            "tags": list(self.tags),
            "attachments": list(self.attachments),
            "recurrence": self.recurrence,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        """Build a Task from a stored dict, backfilling anything missing.

        A record without an id gets a fresh one; unreadable numbers fall back
        to their defaults.
        """
        task_id = data.get("id")
        recurrence = data.get("recurrence")
        return cls(
            id=str(task_id) if task_id not in (None, "") else uuid.uuid4().hex,
            title=str(data.get("title") or ""),
            day=str(data.get("day") or ""),
            date=str(data.get("date") or ""),
            start_time=str(data.get("startTime") or ""),
            end_time=str(data.get("endTime") or ""),
            description=str(data.get("description") or ""),
            location=str(data.get("location") or ""),
            notes=str(data.get("notes") or ""),
            priority=data.get("priority") or Priority.MEDIUM.value,
            category=data.get("category") or "personal",
            completed=bool(data.get("completed", False)),
            completed_at=data.get("completedAt") or None,
            estimated_duration=_as_int(data.get("estimatedDuration"), None) or DEFAULT_ESTIMATED_DURATION,
            actual_duration=max(0, _as_int(data.get("actualDuration"), 0)),
            time_tracking=TimeTracking.from_dict(data.get("timeTracking")),
            tags=[str(t) for t in _as_list(data.get("tags"))],
            attachments=_as_list(data.get("attachments")),
            recurrence=recurrence if isinstance(recurrence, dict) and recurrence else None,
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt") or "",
        )


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------


@dataclass
class Notification:
    """An emitted alert. task_id is None for task-less types (break, schedule)."""

    id: str
    type: NotificationType
    message: str
    timestamp: int                    # epoch milliseconds
    task_id: str | None = None
    task_title: str = ""
    read: bool = False
    milestone: int | None = None      # progress notifications only

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.type.value,
            "taskId": self.task_id,
            "taskTitle": self.task_title,
            "message": self.message,
            "timestamp": self.timestamp,
            "read": self.read,
        }
        if self.milestone is not None:
            d["milestone"] = self.milestone
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Notification:
        milestone = data.get("milestone")
        return cls(
            id=str(data["id"]),
            type=NotificationType(data["type"]),
            message=str(data.get("message") or ""),
            timestamp=int(data.get("timestamp") or 0),
            task_id=None if data.get("taskId") is None else str(data["taskId"]),
            task_title=str(data.get("taskTitle") or ""),
            read=bool(data.get("read", False)),
            milestone=None if milestone is None else int(milestone),
        )


# ---------------------------------------------------------------------------
# Notification settings
# ---------------------------------------------------------------------------


class QuietHours(BaseModel):
    """Time-of-day window in which non-critical notifications are dropped."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    start: str = "22:00"
    end: str = "07:00"

    @field_validator("start", "end")
    @classmethod
    def check_hhmm(cls, v: str) -> str:
        if not _HHMM_RE.match(v):
            raise ValueError(f"Expected HH:MM, got {v!r}")
        return v


class NotificationSettings(BaseModel):
    """User-facing notification preferences, persisted under camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    reminder_timing: int = Field(default=15, alias="reminderTiming", ge=0)
    sound_enabled: bool = Field(default=True, alias="soundEnabled")
    push_enabled: bool = Field(default=True, alias="pushEnabled")
    break_reminders: bool = Field(default=True, alias="breakReminders")
    daily_summary: bool = Field(default=True, alias="dailySummary")
    quiet_hours: QuietHours = Field(default_factory=QuietHours, alias="quietHours")
    reminder_frequency: str = Field(default="once", alias="reminderFrequency")
    overdue_frequency: str = Field(default="5min", alias="overdueFrequency")
    show_in_progress_overdue: bool = Field(default=False, alias="showInProgressOverdue")
    max_reminders_per_task: int = Field(default=3, alias="maxRemindersPerTask", ge=0)

    @field_validator("reminder_frequency")
    @classmethod
    def check_reminder_frequency(cls, v: str) -> str:
        if v not in ("once", "5min", "10min", "until_start"):
            raise ValueError(f"Unknown reminder frequency: {v!r}")
        return v

    @field_validator("overdue_frequency")
    @classmethod
    def check_overdue_frequency(cls, v: str) -> str:
        if v not in ("once", "5min", "10min", "until_done"):
            raise ValueError(f"Unknown overdue frequency: {v!r}")
        return v

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
