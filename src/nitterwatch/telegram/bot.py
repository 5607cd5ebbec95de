"""Telegram command surface for channel subscriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from telegram.constants import ChatType
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from nitterwatch.errors import FetchFailed, IndexConsistencyError, SubscriptionError
from nitterwatch.subscriptions.models import ChannelRef
from nitterwatch.telegram.delivery import PLATFORM, bot_id_for

if TYPE_CHECKING:
    from telegram import Update

    from nitterwatch.config import Settings
    from nitterwatch.poller.engine import PollEngine
    from nitterwatch.subscriptions.service import SubscriptionService

logger = structlog.get_logger()

_GROUP_CHATS = {ChatType.GROUP, ChatType.SUPERGROUP, ChatType.CHANNEL}


def channel_ref_for(update: Update) -> ChannelRef:
    """Telegram has no guilds; the chat id doubles as the guild id."""
    chat_id = str(update.effective_chat.id)  # type: ignore[union-attr]
    return ChannelRef(platform=PLATFORM, channel_id=chat_id, guild_id=chat_id)


class NitterTelegramBot:
    """Telegram bot exposing the tweet subscription commands."""

    def __init__(
        self,
        token: str,
        service: SubscriptionService,
        settings: Settings,
        engine: PollEngine | None = None,
    ) -> None:
        self.service = service
        self.settings = settings
        self.engine = engine
        self.allowed_users = settings.telegram_allowed_users
        self.app: Application = ApplicationBuilder().token(token).build()  # type: ignore[assignment]
        self._register_handlers()

    def _register_handlers(self) -> None:
        self.app.add_handler(CommandHandler("help", self.cmd_help))
        self.app.add_handler(CommandHandler("status", self.cmd_status))
        self.app.add_handler(CommandHandler("tweet_add", self.cmd_tweet_add))
        self.app.add_handler(CommandHandler("tweet_remove", self.cmd_tweet_remove))
        self.app.add_handler(CommandHandler("tweet_list", self.cmd_tweet_list))

    def _is_authorized(self, user_id: int) -> bool:
        """Check if user is in the whitelist. Empty list = deny all."""
        if not self.allowed_users:
            return False
        return user_id in self.allowed_users

    async def _check_group_command(self, update: Update) -> bool:
        """Guard shared by the tweet commands: authorized user in a group chat."""
        if not update.effective_user or not update.message or not update.effective_chat:
            return False
        if not self._is_authorized(update.effective_user.id):
            logger.warning("unauthorized_access", user_id=update.effective_user.id)
            return False
        if update.effective_chat.type not in _GROUP_CHATS:
            await update.message.reply_text("This command can only be used in group chats.")
            return False
        return True

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.effective_user or not update.message:
            return
        if not self._is_authorized(update.effective_user.id):
            return

        await update.message.reply_text(
            "Available commands:\n\n"
            "/tweet_add <user> - watch a Twitter user's tweets\n"
            "/tweet_remove <user> - stop watching a user\n"
            "/tweet_list - list watched users\n"
            "/status - poller status"
        )

    async def cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.effective_user or not update.message:
            return
        if not self._is_authorized(update.effective_user.id):
            return

        if self.engine is None:
            await update.message.reply_text("Poller is not running.")
            return

        status = self.engine.get_status()
        await update.message.reply_text(
            f"Poller: {'running' if status['running'] else 'stopped'}\n"
            f"Renderer: {status['renderer']}\n"
            f"Watched users: {status['identities']}\n"
            f"Interval: {status['interval']}s\n"
            f"Ticks: {status['ticks']}\n"
            f"Delivered: {status['delivered']}\n"
            f"Fetch failures: {status['fetch_failures']}"
        )

    async def cmd_tweet_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /tweet_add <uid>."""
        if not await self._check_group_command(update):
            return

        args = context.args or []
        if len(args) != 1:
            await update.message.reply_text("Usage: /tweet_add <user>")  # type: ignore[union-attr]
            return

        ref = channel_ref_for(update)
        try:
            record = await self.service.subscribe(ref, args[0], bot_id_for(context.bot))
        except SubscriptionError as e:
            await update.message.reply_text(str(e))  # type: ignore[union-attr]
            return
        except FetchFailed:
            await update.message.reply_text(  # type: ignore[union-attr]
                "Request failed, check that the user name is correct or try again."
            )
            return
        except IndexConsistencyError as e:
            logger.error("index_consistency_error", command="tweet_add", channel_id=ref.channel_id, error=str(e))
            await update.message.reply_text("Internal error, the watch list was not changed.")  # type: ignore[union-attr]
            return

        await update.message.reply_text(f"Now watching {record.feed_identity}.")  # type: ignore[union-attr]

    async def cmd_tweet_remove(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /tweet_remove <uid>."""
        if not await self._check_group_command(update):
            return

        args = context.args or []
        if len(args) != 1:
            await update.message.reply_text("Usage: /tweet_remove <user>")  # type: ignore[union-attr]
            return

        ref = channel_ref_for(update)
        try:
            await self.service.unsubscribe(ref, args[0])
        except SubscriptionError as e:
            await update.message.reply_text(str(e))  # type: ignore[union-attr]
            return
        except IndexConsistencyError as e:
            logger.error("index_consistency_error", command="tweet_remove", channel_id=ref.channel_id, error=str(e))
            await update.message.reply_text("Internal error, the watch list was not changed.")  # type: ignore[union-attr]
            return

        await update.message.reply_text("Removed.")  # type: ignore[union-attr]

    async def cmd_tweet_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /tweet_list."""
        if not await self._check_group_command(update):
            return

        records = await self.service.list_subscriptions(channel_ref_for(update))
        if not records:
            await update.message.reply_text("The watch list is empty.")  # type: ignore[union-attr]
            return
        await update.message.reply_text(  # type: ignore[union-attr]
            "\n".join(f"· {record.feed_identity}" for record in records)
        )
