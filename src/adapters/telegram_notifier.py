"""Telegram push adapter — implements PushPort.

Wraps a telegram.Bot instance and a target chat to satisfy the PushPort
protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of PushPort."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def push(self, title: str, body: str) -> None:
        text = f"{title}\n{body}" if title else body
        await self._bot.send_message(chat_id=self._chat_id, text=text)

    async def initialize(self) -> None:
        """Open the bot's HTTP session; call once before the first push."""
        await self._bot.initialize()
        logger.info("Telegram push ready (chat %s)", self._chat_id)

    async def shutdown(self) -> None:
        await self._bot.shutdown()
