"""Headless Chromium page provider (requires the ``image`` extra)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import async_playwright

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright

logger = structlog.get_logger()


class PlaywrightPages:
    """One shared browser; every ``page()`` gets its own context and page."""

    def __init__(self, user_agent: str | None = None) -> None:
        self.user_agent = user_agent
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=True)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("browser_started", version=self._browser.version)

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        if self._browser is None:
            raise RuntimeError("Browser not started. Call start() first.")
        context = await self._browser.new_context(user_agent=self.user_agent)
        try:
            yield await context.new_page()
        finally:
            # Closing the context closes its page too
            await context.close()

    async def close(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("browser_stopped")
