"""Plain text notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nitterwatch.rendering.base import BaseRenderer, Notification, headline

if TYPE_CHECKING:
    from nitterwatch.feeds.client import FeedItem


class TextRenderer(BaseRenderer):
    kind = "text"

    async def render(self, item: FeedItem) -> Notification:
        return Notification(text=f"{headline(item)}\n{item.title}\n{self.link_for(item)}")
