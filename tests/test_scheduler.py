"""Tests for src.core.scheduler — runtime wiring, ticks and teardown."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.notification_store import NotificationStore
from src.core.notifier import NotificationCenter
from src.core.scheduler import TimetableRuntime, create_runtime
from src.core.task_board import TaskBoard
from src.data.models import NotificationSettings, NotificationType, QuietHours


@pytest.fixture
def clock(now):
    return MagicMock(return_value=now)


@pytest.fixture
def push():
    mock = MagicMock()
    mock.push = AsyncMock()
    return mock


def _runtime(tasks, clock, settings=None, push=None, repository=None, **kwargs):
    settings = settings or NotificationSettings()
    kwargs.setdefault("rule_interval", 3600)
    board = TaskBoard(tasks, clock=clock)
    runtime = None
    center = NotificationCenter(
        NotificationStore(),
        settings=lambda: runtime.settings,
        push=push,
        clock=clock,
    )
    runtime = TimetableRuntime(
        board, center, settings, repository=repository, clock=clock, **kwargs,
    )
    return runtime


# ---------------------------------------------------------------------------
# Rule ticks
# ---------------------------------------------------------------------------


class TestRunRulesOnce:
    @pytest.mark.asyncio
    async def test_emits_through_center(self, make_task, clock, push):
        task = make_task(title="Standup", start_time="10:10", end_time="10:30")
        runtime = _runtime([task], clock, push=push)

        appended = await runtime.run_rules_once()

        assert [n.type for n in appended] == [NotificationType.REMINDER, NotificationType.SCHEDULE]
        assert list(runtime.center.store.items) == list(reversed(appended))
        assert push.push.await_count == 2

    @pytest.mark.asyncio
    async def test_next_tick_reads_fresh_state(self, make_task, clock, now):
        task = make_task(start_time="10:10", end_time="10:11")
        runtime = _runtime([task], clock)
        await runtime.run_rules_once()

        clock.return_value = now + timedelta(minutes=1)
        assert await runtime.run_rules_once() == []

        runtime.board.add_task({
            "title": "Call", "day": "Monday", "startTime": "10:12", "endTime": "10:20",
        })
        [n] = await runtime.run_rules_once()
        assert n.type is NotificationType.REMINDER
        assert n.task_title == "Call"

    @pytest.mark.asyncio
    async def test_quiet_hours_late_evening(self, make_task, clock, now):
        clock.return_value = now.replace(hour=23)
        settings = NotificationSettings(quiet_hours=QuietHours(enabled=True, start="22:00", end="07:00"))
        upcoming = make_task(title="Stretch", start_time="23:10", end_time="23:20")
        late = make_task(title="Review", start_time="22:50", end_time="23:30")
        runtime = _runtime([upcoming, late], clock, settings=settings)

        appended = await runtime.run_rules_once()

        assert [(n.type, n.task_title) for n in appended] == [(NotificationType.OVERDUE, "Review")]

    @pytest.mark.asyncio
    async def test_emit_failure_does_not_drop_others(self, make_task, clock):
        task = make_task(start_time="10:10", end_time="10:30")
        runtime = _runtime([task], clock)
        runtime.center.add = AsyncMock(side_effect=[RuntimeError("boom"), True])

        appended = await runtime.run_rules_once()

        assert [n.type for n in appended] == [NotificationType.SCHEDULE]

    @pytest.mark.asyncio
    async def test_settings_change_applies(self, make_task, clock):
        task = make_task(start_time="10:10", end_time="10:30")
        runtime = _runtime([task], clock)
        runtime.update_settings(NotificationSettings(enabled=False))
        await asyncio.sleep(0.01)
        assert len(runtime.center.store) == 0
        assert await runtime.run_rules_once() == []

    def test_request_evaluation_without_loop_is_noop(self, make_task, clock):
        runtime = _runtime([make_task()], clock)
        runtime.request_evaluation()
        assert len(runtime.center.store) == 0


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_runs_once_and_arms_loops(self, make_task, clock):
        runtime = _runtime([make_task(start_time="10:10", end_time="10:30")], clock)

        await runtime.start()
        try:
            assert runtime.running is True
            assert len(runtime.center.store) == 2
        finally:
            await runtime.shutdown()

        assert runtime.running is False

    @pytest.mark.asyncio
    async def test_display_tick_reports_active_task(self, make_task, clock, now):
        on_display = MagicMock()
        task = make_task(start_time="07:00", end_time="08:00")
        runtime = _runtime([task], clock, on_display=on_display, display_interval=0.01)
        runtime.board.start_tracking(task.id)
        clock.return_value = now + timedelta(seconds=90)

        async with runtime:
            await asyncio.sleep(0.05)

        shown_task, elapsed = on_display.call_args[0]
        assert shown_task.id == task.id
        assert elapsed == 90_000

    @pytest.mark.asyncio
    async def test_display_tick_silent_when_idle(self, make_task, clock):
        on_display = MagicMock()
        runtime = _runtime([make_task()], clock, on_display=on_display, display_interval=0.01)
        async with runtime:
            await asyncio.sleep(0.03)
        on_display.assert_not_called()

    @pytest.mark.asyncio
    async def test_rule_loop_ticks(self, make_task, clock, now):
        runtime = _runtime([make_task(start_time="07:00", end_time="08:00")], clock, rule_interval=0.01)
        async with runtime:
            runtime.board.add_task({
                "title": "Call", "day": "Monday", "startTime": "10:12", "endTime": "10:20",
            })
            await asyncio.sleep(0.05)
        assert any(n.task_title == "Call" for n in runtime.center.store.items)

    @pytest.mark.asyncio
    async def test_shutdown_force_stops_tracking_and_persists(self, make_task, clock, now, repository):
        task = make_task(start_time="07:00", end_time="08:00")
        runtime = _runtime([task], clock, repository=repository)
        runtime.board.start_tracking(task.id)

        await runtime.start()
        clock.return_value = now + timedelta(minutes=30)
        await runtime.shutdown()

        [saved] = repository.load_tasks()
        assert saved.time_tracking.is_tracking is False
        assert saved.time_tracking.total_time_spent == 30 * 60_000
        assert len(repository.load_notifications()) == len(runtime.center.store)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, make_task, clock):
        runtime = _runtime([make_task()], clock)
        await runtime.start()
        loops = list(runtime._loops)
        await runtime.start()
        assert runtime._loops == loops
        await runtime.shutdown()


class TestToggleCompletion:
    @pytest.mark.asyncio
    async def test_emits_completion_and_stops_tracking(self, make_task, clock, now):
        task = make_task(title="Write report", start_time="07:00", end_time="08:00")
        runtime = _runtime([task], clock)
        runtime.board.start_tracking(task.id)
        clock.return_value = now + timedelta(minutes=10)

        result = await runtime.toggle_completion(task.id)

        assert result.success is True
        stored = runtime.board.get_task(task.id)
        assert stored.completed is True
        assert stored.time_tracking.is_tracking is False
        assert stored.time_tracking.total_time_spent == 10 * 60_000
        [n] = runtime.center.store.items
        assert n.type is NotificationType.COMPLETION

    @pytest.mark.asyncio
    async def test_uncomplete_is_silent(self, make_task, clock):
        task = make_task(completed=True)
        runtime = _runtime([task], clock)
        await runtime.toggle_completion(task.id)
        assert len(runtime.center.store) == 0


# ---------------------------------------------------------------------------
# create_runtime
# ---------------------------------------------------------------------------


class TestCreateRuntime:
    @pytest.mark.asyncio
    async def test_loads_persisted_state(self, repository, make_task, clock):
        repository.save_tasks([make_task(title="Stored", start_time="10:10", end_time="10:30")])
        repository.save_settings(NotificationSettings(daily_summary=False))

        runtime = create_runtime(repository, clock=clock)

        assert [t.title for t in runtime.board.tasks] == ["Stored"]
        assert runtime.settings.daily_summary is False
        [n] = await runtime.run_rules_once()
        assert n.type is NotificationType.REMINDER
        assert [r.id for r in repository.load_notifications()] == [n.id]

    @pytest.mark.asyncio
    async def test_task_change_persists_and_reevaluates(self, repository, clock):
        runtime = create_runtime(repository, clock=clock)

        runtime.board.add_task({
            "title": "Call", "day": "Monday", "startTime": "10:05", "endTime": "10:20",
        })
        await asyncio.sleep(0.01)

        assert [t.title for t in repository.load_tasks()] == ["Call"]
        kinds = {n.type for n in runtime.center.store.items}
        assert NotificationType.REMINDER in kinds

    @pytest.mark.asyncio
    async def test_shutdown_leaves_nothing_scheduled(self, repository, clock):
        runtime = create_runtime(repository, clock=clock)
        result = runtime.board.add_task({
            "title": "Focus", "day": "Monday", "startTime": "09:30", "endTime": "11:00",
        })
        runtime.board.start_tracking(result.task.id)
        await runtime.start()

        await runtime.shutdown()

        assert runtime._pending == set()
        assert not runtime.board.tasks[0].time_tracking.is_tracking
        assert repository.load_tasks()[0].time_tracking.is_tracking is False

    @pytest.mark.asyncio
    async def test_changes_after_shutdown_schedule_nothing(self, repository, clock):
        runtime = create_runtime(repository, clock=clock)
        await runtime.start()
        await runtime.shutdown()

        runtime.board.add_task({
            "title": "Late", "day": "Tuesday", "startTime": "09:00", "endTime": "10:00",
        })

        assert runtime._pending == set()
        assert [t.title for t in repository.load_tasks()] == ["Late"]

    def test_marks_store_version(self, repository, kv_store):
        create_runtime(repository)
        assert kv_store.get("timetable-version") == "1.0"
