"""Screenshot notifications rendered through a headless browser page."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from nitterwatch.errors import RenderFailed
from nitterwatch.rendering.base import BaseRenderer, Notification, headline

if TYPE_CHECKING:
    from nitterwatch.config import Settings
    from nitterwatch.feeds.client import FeedItem

logger = structlog.get_logger()

# Nitter interstitial asking the visitor to confirm before showing the tweet
_CONSENT_SUBMIT = 'form#reqform input[type="submit"]'
_TIMELINE_ITEM = ".timeline-item"


class PageProvider(Protocol):
    """Source of browser pages; each page is closed when its context exits."""

    def page(self) -> AbstractAsyncContextManager[Any]: ...


class ImageRenderer(BaseRenderer):
    """Screenshot the tweet's timeline item and caption it with author and link."""

    kind = "image"

    def __init__(self, settings: Settings, pages: PageProvider) -> None:
        super().__init__(settings)
        self.pages = pages

    async def render(self, item: FeedItem) -> Notification:
        timeout_ms = self.settings.render_timeout * 1000
        try:
            async with self.pages.page() as page:
                await page.set_viewport_size(
                    {"width": self.settings.viewport_width, "height": self.settings.viewport_height}
                )
                await page.goto(item.link, timeout=timeout_ms)
                await page.wait_for_load_state("networkidle", timeout=timeout_ms)

                consent = await page.query_selector(_CONSENT_SUBMIT)
                if consent is not None:
                    await consent.click()
                    await page.wait_for_load_state("networkidle", timeout=timeout_ms)

                element = await page.query_selector(_TIMELINE_ITEM)
                if element is None:
                    raise RenderFailed(item.link, f"no {_TIMELINE_ITEM} element on page")
                screenshot = await element.screenshot(timeout=timeout_ms)
        except RenderFailed:
            raise
        except Exception as e:
            raise RenderFailed(item.link, str(e) or type(e).__name__) from e

        logger.debug("tweet_screenshot_taken", link=item.link, size=len(screenshot))
        return Notification(text=f"{headline(item)}\n{self.link_for(item)}", image=screenshot)
