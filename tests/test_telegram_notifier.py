"""Tests for src.adapters.telegram_notifier — PushPort over a Telegram bot."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.adapters.telegram_notifier import TelegramNotifier


@pytest.fixture
def bot():
    mock = MagicMock()
    mock.send_message = AsyncMock()
    return mock


@pytest.mark.asyncio
async def test_push_sends_title_and_body(bot):
    notifier = TelegramNotifier(bot, chat_id=42)
    await notifier.push("Standup", '"Standup" starts in 10 minutes')
    bot.send_message.assert_awaited_once_with(
        chat_id=42, text='Standup\n"Standup" starts in 10 minutes',
    )


@pytest.mark.asyncio
async def test_push_without_title(bot):
    notifier = TelegramNotifier(bot, chat_id=42)
    await notifier.push("", "Time for a break")
    bot.send_message.assert_awaited_once_with(chat_id=42, text="Time for a break")


@pytest.mark.asyncio
async def test_push_propagates_errors(bot):
    bot.send_message.side_effect = RuntimeError("network")
    notifier = TelegramNotifier(bot, chat_id=42)
    with pytest.raises(RuntimeError):
        await notifier.push("x", "y")


@pytest.mark.asyncio
async def test_initialize_and_shutdown_delegate_to_bot(bot):
    bot.initialize = AsyncMock()
    bot.shutdown = AsyncMock()
    notifier = TelegramNotifier(bot, chat_id=42)
    await notifier.initialize()
    await notifier.shutdown()
    bot.initialize.assert_awaited_once()
    bot.shutdown.assert_awaited_once()
