"""
Timetable — Runtime Scheduler.

Wires the task board, the rule engine and the notification center together
and drives them from two asyncio loops:

Display tick (every second): recomputes the elapsed time of the Active task
and hands it to an optional display callback. Read-only.

Rule tick (every minute): builds a fresh EngineSnapshot from the current
tasks, notification log and settings, evaluates it and emits the results
through the notification center. Also runs once on startup and whenever
tasks or settings change.

Both loops read state at fire time, never from values captured when the loop
was armed. shutdown() cancels them, force-stops any open tracking session
and persists everything.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from src.core.notification_rules import (
    SUMMARY_END_HOUR,
    SUMMARY_START_HOUR,
    EngineSnapshot,
    evaluate,
)
from src.core.time_tracking import elapsed_ms

if TYPE_CHECKING:
    from src.core.notifier import NotificationCenter
    from src.core.task_board import MutationResult, TaskBoard
    from src.data.models import Notification, NotificationSettings, Task
    from src.data.repository import TimetableRepository
    from src.ports.notification_port import PushPort, SoundPort

logger = logging.getLogger(__name__)

DisplayCallback = Callable[["Task", int], None]


class TimetableRuntime:
    """Owns the periodic work and the engine's lifecycle."""

    def __init__(
        self,
        board: TaskBoard,
        center: NotificationCenter,
        settings: NotificationSettings,
        repository: TimetableRepository | None = None,
        clock: Callable[[], datetime] | None = None,
        rule_interval: float = 60.0,
        display_interval: float = 1.0,
        summary_hours: tuple[int, int] = (SUMMARY_START_HOUR, SUMMARY_END_HOUR),
        on_display: DisplayCallback | None = None,
    ) -> None:
        self._board = board
        self._center = center
        self._settings = settings
        self._repository = repository
        self._clock = clock or datetime.now
        self._rule_interval = max(0.01, float(rule_interval))
        self._display_interval = max(0.01, float(display_interval))
        self._summary_hours = summary_hours
        self._on_display = on_display
        self._loops: list[asyncio.Task] = []
        self._eval_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._closing = False

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def board(self) -> TaskBoard:
        return self._board

    @property
    def center(self) -> NotificationCenter:
        return self._center

    @property
    def settings(self) -> NotificationSettings:
        return self._settings

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._loops)

    def snapshot(self, now: datetime | None = None) -> EngineSnapshot:
        """Current state, read now."""
        return EngineSnapshot(
            tasks=self._board.tasks,
            notifications=list(self._center.store.items),
            settings=self._settings,
            now=now or self._clock(),
            summary_hours=self._summary_hours,
        )

    def update_settings(self, settings: NotificationSettings) -> None:
        self._settings = settings
        if self._repository is not None:
            self._repository.save_settings(settings)
        self.request_evaluation()

    def current_elapsed(self) -> tuple[Task, int] | None:
        """The Active task and its live elapsed milliseconds, if any task is Active."""
        task = self._board.active_task()
        if task is None:
            return None
        now_ms = int(self._clock().timestamp() * 1000)
        return task, elapsed_ms(task.time_tracking, now_ms)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def run_rules_once(self, now: datetime | None = None) -> list[Notification]:
        """Evaluate one tick and emit what it produced. Returns the appended ones."""
        async with self._eval_lock:
            snapshot = self.snapshot(now)
            appended: list[Notification] = []
            for notification in evaluate(snapshot):
                try:
                    if await self._center.add(notification, snapshot.now):
                        appended.append(notification)
                except Exception:
                    logger.exception("Failed to emit notification %s", notification.id)
            return appended

    def request_evaluation(self) -> None:
        """Schedule an immediate rule run (after a task or settings change).

        Outside a running event loop, or once shutdown has begun, this is a
        no-op; the next tick picks the change up.
        """
        if self._closing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.run_rules_once())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _rule_loop(self) -> None:
        while True:
            await asyncio.sleep(self._rule_interval)
            try:
                await self.run_rules_once()
            except Exception:
                logger.exception("Rule tick failed")

    async def _display_loop(self) -> None:
        while True:
            await asyncio.sleep(self._display_interval)
            try:
                current = self.current_elapsed()
                if current is not None and self._on_display is not None:
                    self._on_display(*current)
            except Exception:
                logger.exception("Display tick failed")

    async def start(self) -> None:
        """Run the rules once, then arm both loops."""
        if self.running:
            return
        self._closing = False
        await self.run_rules_once()
        self._loops = [
            asyncio.create_task(self._rule_loop(), name="rule_tick"),
            asyncio.create_task(self._display_loop(), name="display_tick"),
        ]
        logger.info(
            "Runtime started (rules every %.0fs, display every %.1fs)",
            self._rule_interval, self._display_interval,
        )

    async def shutdown(self) -> None:
        """Cancel loops, close any open session and persist state."""
        self._closing = True
        loops = self._loops + list(self._pending)
        self._loops = []
        for task in loops:
            task.cancel()
        await asyncio.gather(*loops, return_exceptions=True)

        stopped = self._board.stop_active_session()
        if stopped is not None:
            logger.info("Stopped tracking on '%s' at shutdown", stopped.title)

        if self._repository is not None:
            self._repository.save_tasks(self._board.tasks)
            self._repository.save_notifications(list(self._center.store.items))
        logger.info("Runtime stopped")

    async def __aenter__(self) -> TimetableRuntime:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # User actions that emit
    # ------------------------------------------------------------------

    async def toggle_completion(self, task_id: str) -> MutationResult:
        """Toggle completion and emit a completion notification on false->true."""
        result = self._board.toggle_completion(task_id)
        if result.success and result.task is not None and result.task.completed:
            active = self._board.active_task()
            if active is not None and active.id == task_id:
                self._board.stop_tracking(task_id)
            await self._center.notify_completion(result.task, self._clock())
        return result


def create_runtime(
    repository: TimetableRepository,
    push: PushPort | None = None,
    sound: SoundPort | None = None,
    clock: Callable[[], datetime] | None = None,
    rule_interval: float = 60.0,
    display_interval: float = 1.0,
    summary_hours: tuple[int, int] = (SUMMARY_START_HOUR, SUMMARY_END_HOUR),
    on_display: DisplayCallback | None = None,
) -> TimetableRuntime:
    """Load persisted state and wire board -> runtime -> center -> store.

    Task changes are persisted and trigger an immediate rule run;
    notification log changes are persisted.
    """
    from src.core.notification_store import NotificationStore
    from src.core.notifier import NotificationCenter
    from src.core.task_board import TaskBoard

    repository.check_and_migrate()
    clock = clock or datetime.now
    runtime: TimetableRuntime | None = None

    def _tasks_changed(tasks: list[Task]) -> None:
        repository.save_tasks(tasks)
        if runtime is not None:
            runtime.request_evaluation()

    board = TaskBoard(repository.load_tasks(), on_change=_tasks_changed, clock=clock)
    store = NotificationStore(repository.load_notifications())
    center = NotificationCenter(
        store,
        settings=lambda: runtime.settings if runtime is not None else repository.load_settings(),
        sound=sound,
        push=push,
        on_change=lambda s: repository.save_notifications(list(s.items)),
        clock=clock,
    )
    runtime = TimetableRuntime(
        board,
        center,
        repository.load_settings(),
        repository=repository,
        clock=clock,
        rule_interval=rule_interval,
        display_interval=display_interval,
        summary_hours=summary_hours,
        on_display=on_display,
    )
    return runtime
