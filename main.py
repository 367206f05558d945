"""
Timetable — Entry Point.

Single entry point: `python main.py` loads the stored timetable, runs the
notification engine until interrupted and persists on the way out.
"""

import asyncio
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from src.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.adapters.sound_cue import ToneCue
from src.core.analytics import get_streak_count, get_weekly_summary
from src.core.scheduler import create_runtime
from src.core.time_model import format_milliseconds
from src.data.db import KeyValueStore
from src.data.repository import TimetableRepository

logger = logging.getLogger(__name__)


def _build_push():
    """TelegramNotifier when a bot token and chat id are configured."""
    if not settings.push_configured:
        logger.info("Push disabled (TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID not set)")
        return None
    from telegram import Bot

    from src.adapters.telegram_notifier import TelegramNotifier
    return TelegramNotifier(Bot(settings.TELEGRAM_BOT_TOKEN), settings.TELEGRAM_CHAT_ID)


def _show_elapsed(task, elapsed: int) -> None:
    logger.debug("Tracking '%s': %s", task.title, format_milliseconds(elapsed, compact=True))


async def run() -> None:
    tz = ZoneInfo(settings.TIMEZONE)
    push = _build_push()
    if push is not None:
        await push.initialize()
    repository = TimetableRepository(KeyValueStore(settings.DATABASE_PATH, settings.STORAGE_QUOTA_BYTES))
    runtime = create_runtime(
        repository,
        push=push,
        sound=ToneCue(),
        clock=lambda: datetime.now(tz),
        rule_interval=settings.RULE_TICK_SECONDS,
        display_interval=settings.DISPLAY_TICK_SECONDS,
        summary_hours=(settings.SUMMARY_START_HOUR, settings.SUMMARY_END_HOUR),
        on_display=_show_elapsed,
    )
    today = datetime.now(tz).date()
    week = get_weekly_summary(runtime.board.tasks, today=today)
    logger.info(
        "This week: %d/%d tasks done, %.1fh tracked, %d-day streak",
        week.completed, week.total, week.total_time_hours,
        get_streak_count(runtime.board.tasks, today=today),
    )
    try:
        async with runtime:
            await asyncio.Event().wait()
    finally:
        if push is not None:
            await push.shutdown()


def main() -> None:
    logger.info("Starting Timetable engine...")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
