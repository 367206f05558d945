"""Tests for src.core.task_validation — field rules and input sanitising."""

import pytest

from src.core.task_validation import (
    get_validation_errors,
    has_required_fields,
    sanitize_task_input,
    validate_recurrence,
    validate_task_data,
    validate_time_tracking,
)


def _fields(**overrides):
    data = {
        "title": "Write report",
        "day": "Monday",
        "startTime": "09:00",
        "endTime": "10:00",
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# validate_task_data
# ---------------------------------------------------------------------------


class TestValidateTaskData:
    def test_minimal_task_is_valid(self):
        result = validate_task_data(_fields())
        assert result.is_valid is True
        assert result.errors == {}

    def test_title_required(self):
        result = validate_task_data(_fields(title="   "))
        assert result.errors["title"] == "Task title is required"

    def test_title_length(self):
        result = validate_task_data(_fields(title="x" * 201))
        assert "title" in result.errors

    def test_times_required(self):
        result = validate_task_data(_fields(startTime="", endTime=None))
        assert result.errors["startTime"] == "Start time is required"
        assert result.errors["endTime"] == "End time is required"

    def test_bad_time_format(self):
        result = validate_task_data(_fields(startTime="9am"))
        assert result.errors["startTime"] == "Invalid start time format (use HH:MM)"

    @pytest.mark.parametrize("start,end", [("10:00", "09:00"), ("10:00", "10:00"), ("23:00", "01:00")])
    def test_end_must_follow_start(self, start, end):
        result = validate_task_data(_fields(startTime=start, endTime=end))
        assert result.errors["time"] == "End time must be after start time"

    def test_invalid_day(self):
        assert validate_task_data(_fields(day="Funday")).errors["day"] == "Invalid day"

    def test_missing_day(self):
        assert validate_task_data(_fields(day="")).errors["day"] == "Day is required"

    def test_date_format(self):
        assert "date" in validate_task_data(_fields(date="19/10/2026")).errors
        assert validate_task_data(_fields(date="2026-10-19")).is_valid is True

    def test_category_and_priority(self):
        errors = validate_task_data(_fields(category="chores", priority="urgent")).errors
        assert errors["category"] == "Invalid category"
        assert errors["priority"] == "Invalid priority level"

    def test_free_text_limits(self):
        errors = validate_task_data(_fields(
            description="d" * 1001, location="l" * 201, notes="n" * 2001,
        )).errors
        assert set(errors) == {"description", "location", "notes"}

    def test_too_many_tags(self):
        errors = validate_task_data(_fields(tags=[f"t{i}" for i in range(21)])).errors
        assert errors["tags"] == "Maximum 20 tags allowed"

    def test_tag_too_long(self):
        errors = validate_task_data(_fields(tags=["ok", "x" * 51])).errors
        assert errors["tags"].startswith("Tag 2 is invalid")

    def test_bad_recurrence(self):
        errors = validate_task_data(_fields(recurrence={"enabled": True, "pattern": "yearly"})).errors
        assert errors["recurrence"] == "Invalid recurrence pattern"
        assert validate_task_data(_fields(recurrence="weekly")).errors["recurrence"] == "Invalid recurrence"

    def test_disabled_recurrence_is_valid(self):
        assert validate_task_data(_fields(recurrence={"enabled": False})).is_valid
        assert validate_task_data(_fields(recurrence=None)).is_valid

    def test_bad_time_tracking(self):
        tracking = {"isTracking": False, "totalTimeSpent": -5, "sessions": []}
        errors = validate_task_data(_fields(timeTracking=tracking)).errors
        assert errors["timeTracking"] == "Invalid time tracking data"

    def test_good_time_tracking(self):
        tracking = {"isTracking": False, "totalTimeSpent": 0, "sessions": [], "currentSessionStart": None}
        assert validate_task_data(_fields(timeTracking=tracking)).is_valid


# ---------------------------------------------------------------------------
# sanitize_task_input
# ---------------------------------------------------------------------------


class TestSanitizeTaskInput:
    def test_escapes_markup(self):
        cleaned = sanitize_task_input(_fields(title="  <b>Hi</b>  "))
        assert cleaned["title"] == "&lt;b&gt;Hi&lt;&#x2F;b&gt;"

    def test_escapes_quotes(self):
        cleaned = sanitize_task_input(_fields(notes='say "hi"'))
        assert cleaned["notes"] == "say &quot;hi&quot;"

    def test_normalises_tags(self):
        cleaned = sanitize_task_input(_fields(tags=[" Work ", "", "FUN", 3]))
        assert cleaned["tags"] == ["work", "fun"]

    def test_caps_tags(self):
        cleaned = sanitize_task_input(_fields(tags=[f"t{i}" for i in range(30)]))
        assert len(cleaned["tags"]) == 20

    def test_coerces_numbers(self):
        cleaned = sanitize_task_input(_fields(estimatedDuration="1800", actualDuration="bad"))
        assert cleaned["estimatedDuration"] == 1800
        assert cleaned["actualDuration"] == 0

    def test_does_not_mutate_input(self):
        raw = _fields(title=" padded ")
        sanitize_task_input(raw)
        assert raw["title"] == " padded "


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestGetValidationErrors:
    def test_includes_conflict(self, make_task):
        existing = make_task(title="Standup", start_time="09:00", end_time="09:30")
        errors = get_validation_errors(_fields(), [existing])
        assert errors == ["Time conflict with: Standup"]

    def test_editing_skips_self(self, make_task):
        existing = make_task(id="abc", start_time="09:00", end_time="10:00")
        assert get_validation_errors(_fields(), [existing], editing_id="abc") == []

    def test_data_errors_first(self):
        errors = get_validation_errors(_fields(title=""), [])
        assert errors == ["Task title is required"]


class TestSmallValidators:
    def test_has_required_fields(self):
        assert has_required_fields(_fields()) is True
        assert has_required_fields(_fields(endTime="")) is False

    def test_validate_time_tracking(self):
        good = {"isTracking": False, "totalTimeSpent": 0, "sessions": []}
        assert validate_time_tracking(good) is True
        assert validate_time_tracking({**good, "totalTimeSpent": -1}) is False
        assert validate_time_tracking({**good, "isTracking": "no"}) is False
        assert validate_time_tracking(None) is False

    def test_validate_recurrence(self):
        assert validate_recurrence(None) == (True, None)
        assert validate_recurrence({"enabled": False, "pattern": "yearly"}) == (True, None)
        assert validate_recurrence({"enabled": True, "pattern": "yearly"}) == (
            False, "Invalid recurrence pattern",
        )
        assert validate_recurrence({"enabled": True, "pattern": "daily", "interval": 0})[0] is False
        assert validate_recurrence({"enabled": True, "pattern": "daily", "interval": "2"})[0] is False
        assert validate_recurrence({"enabled": True, "pattern": "weekly"}) == (
            False, "Weekly recurrence requires days of week",
        )
        assert validate_recurrence(
            {"enabled": True, "pattern": "weekly", "daysOfWeek": ["Monday"]}
        ) == (True, None)
