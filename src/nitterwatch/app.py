"""Application lifecycle - bootstraps and runs all services."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from nitterwatch import __version__
from nitterwatch.config import Settings
from nitterwatch.db.channels import ChannelRepository
from nitterwatch.db.engine import close_db, init_db
from nitterwatch.feeds.client import FeedClient
from nitterwatch.logging_setup import setup_logging
from nitterwatch.poller.engine import PollEngine
from nitterwatch.rendering import select_renderer
from nitterwatch.subscriptions.index import SubscriptionIndex
from nitterwatch.subscriptions.service import SubscriptionService
from nitterwatch.subscriptions.store import SubscriptionStore
from nitterwatch.telegram.bot import NitterTelegramBot
from nitterwatch.telegram.delivery import TelegramDelivery

if TYPE_CHECKING:
    from nitterwatch.rendering.browser import PlaywrightPages

logger = structlog.get_logger()


class NitterWatchApp:
    """Main application that wires everything together."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.feeds: FeedClient | None = None
        self.pages: PlaywrightPages | None = None
        self.store: SubscriptionStore | None = None
        self.index: SubscriptionIndex | None = None
        self.service: SubscriptionService | None = None
        self.engine: PollEngine | None = None
        self.telegram: NitterTelegramBot | None = None

    async def _start_browser(self) -> PlaywrightPages | None:
        """Start headless Chromium for image rendering; None means text only."""
        if not self.settings.image:
            return None
        try:
            from nitterwatch.rendering.browser import PlaywrightPages

            pages = PlaywrightPages(user_agent=self.settings.user_agent)
            await pages.start()
        except Exception as e:
            logger.warning("browser_unavailable", error=str(e), fallback="text")
            return None
        return pages

    async def start(self) -> None:
        """Start the application."""
        setup_logging(self.settings.log_level, self.settings.log_format)
        Path(self.settings.data_dir).mkdir(parents=True, exist_ok=True)

        logger.info("nitterwatch_starting", version=__version__, endpoint=self.settings.endpoint)

        token = self.settings.telegram_bot_token.get_secret_value()
        if not token:
            logger.warning("no_telegram_token", msg="NITTERWATCH_TELEGRAM_BOT_TOKEN not set - nothing to do")
            return
        if not self.settings.telegram_allowed_users:
            logger.warning(
                "security_warning",
                msg="NITTERWATCH_TELEGRAM_ALLOWED_USERS is empty - bot will reject all commands.",
            )

        await init_db(self.settings.db_path)
        self.feeds = FeedClient(
            endpoint=self.settings.endpoint,
            timeout=self.settings.request_timeout,
            user_agent=self.settings.user_agent,
            proxy=self.settings.http_proxy,
        )
        self.pages = await self._start_browser()
        renderer = select_renderer(self.settings, self.pages)

        # Seed the in-memory index from persisted channel records
        self.store = SubscriptionStore(ChannelRepository())
        self.index = SubscriptionIndex.from_subscriptions(await self.store.list_all_subscriptions())
        self.service = SubscriptionService(
            self.store,
            self.index,
            feeds=self.feeds,
            verify_on_subscribe=self.settings.verify_on_subscribe,
        )

        delivery = TelegramDelivery()
        self.engine = PollEngine(
            index=self.index,
            store=self.store,
            feeds=self.feeds,
            renderer=renderer,
            delivery=delivery,
            interval=self.settings.interval,
        )
        self.telegram = NitterTelegramBot(
            token=token,
            service=self.service,
            settings=self.settings,
            engine=self.engine,
        )

        try:
            logger.info("telegram_bot_starting")
            await self.telegram.app.initialize()
            delivery.register(self.telegram.app.bot)
            await self.telegram.app.start()
            await self.telegram.app.updater.start_polling()  # type: ignore[union-attr]

            await self.engine.start()
            logger.info("nitterwatch_ready", identities=len(self.index), renderer=renderer.kind)

            # Keep running
            await asyncio.Event().wait()
        except (KeyboardInterrupt, SystemExit):
            logger.info("nitterwatch_shutting_down")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self.engine:
            await self.engine.stop()
        if self.telegram and self.telegram.app.running:
            await self.telegram.app.updater.stop()  # type: ignore[union-attr]
            await self.telegram.app.stop()
            await self.telegram.app.shutdown()
        if self.pages:
            await self.pages.close()
        if self.feeds:
            await self.feeds.close()
        await close_db()
