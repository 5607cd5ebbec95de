"""Turning feed items into chat notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nitterwatch.rendering.base import BaseRenderer, Notification, rewrite_link
from nitterwatch.rendering.image import ImageRenderer, PageProvider
from nitterwatch.rendering.text import TextRenderer

if TYPE_CHECKING:
    from nitterwatch.config import Settings

__all__ = [
    "BaseRenderer",
    "ImageRenderer",
    "Notification",
    "PageProvider",
    "TextRenderer",
    "rewrite_link",
    "select_renderer",
]


def select_renderer(settings: Settings, pages: PageProvider | None = None) -> BaseRenderer:
    """Image rendering when enabled and a browser is available, text otherwise."""
    if settings.image and pages is not None:
        return ImageRenderer(settings, pages)
    return TextRenderer(settings)
