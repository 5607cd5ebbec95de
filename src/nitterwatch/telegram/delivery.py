"""Delivery of notifications through registered Telegram bots."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from telegram.error import TelegramError

from nitterwatch.errors import DeliveryFailed

if TYPE_CHECKING:
    from telegram import Bot

    from nitterwatch.rendering import Notification

logger = structlog.get_logger()

PLATFORM = "telegram"


def bot_id_for(bot: Bot) -> str:
    """Platform-qualified id that watcher records use to pick the sending bot."""
    return f"{PLATFORM}:{bot.id}"


class TelegramDelivery:
    """Routes ``send_message`` calls to the bot named by the watcher record."""

    def __init__(self) -> None:
        self._bots: dict[str, Bot] = {}

    def register(self, bot: Bot) -> str:
        bot_id = bot_id_for(bot)
        self._bots[bot_id] = bot
        logger.info("delivery_bot_registered", bot_id=bot_id)
        return bot_id

    async def send_message(self, bot_id: str, channel_id: str, message: Notification, guild_id: str = "") -> None:
        bot = self._bots.get(bot_id)
        if bot is None:
            raise DeliveryFailed(bot_id, channel_id, "no such bot connected")
        try:
            if message.image is not None:
                await bot.send_photo(chat_id=channel_id, photo=message.image, caption=message.text)
            else:
                await bot.send_message(chat_id=channel_id, text=message.text)
        except TelegramError as e:
            raise DeliveryFailed(bot_id, channel_id, str(e)) from e
