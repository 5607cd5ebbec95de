"""Renderer interface and shared formatting helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nitterwatch.config import Settings
    from nitterwatch.feeds.client import FeedItem


@dataclass(frozen=True)
class Notification:
    """A deliverable message: text, optionally with a PNG image it captions."""

    text: str
    image: bytes | None = None


def rewrite_link(link: str, endpoint: str, show_original_link: bool, original_link_base: str) -> str:
    """Point a feed-source link at the canonical public domain when enabled."""
    if not show_original_link:
        return link
    return link.replace(endpoint, original_link_base)


def headline(item: FeedItem) -> str:
    return f"{item.author} posted a tweet:"


class BaseRenderer(ABC):
    """Turns a new feed item into a Notification."""

    kind: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def link_for(self, item: FeedItem) -> str:
        return rewrite_link(
            item.link,
            self.settings.endpoint,
            self.settings.show_original_link,
            self.settings.original_link_base,
        )

    @abstractmethod
    async def render(self, item: FeedItem) -> Notification:
        """Render one item.

        Raises:
            RenderFailed: The item could not be rendered.
        """
        ...
