"""Nitter RSS client.

Fetches ``{endpoint}/{identity}/rss`` and parses it into FeedItems in the
feed's own order (newest first on Nitter). No re-sorting happens here.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from urllib.parse import quote

import feedparser
import httpx
import structlog

from nitterwatch.errors import FetchFailed

logger = structlog.get_logger()

# Maximum RSS response size (2 MB) - feeds larger than this are rejected
_MAX_RESPONSE_BYTES = 2 * 1024 * 1024


@dataclass(frozen=True)
class FeedItem:
    """A single tweet from a user's feed."""

    link: str
    author: str
    description: str
    title: str
    published_at: int  # epoch millis, 0 when the feed carries no date


def _published_millis(entry: feedparser.FeedParserDict) -> int:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return 0
    return calendar.timegm(parsed) * 1000


class FeedClient:
    """Async Nitter feed reader."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 15.0,
        user_agent: str | None = None,
        proxy: str | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        headers = {"User-Agent": user_agent} if user_agent else None
        self._http = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=5,
            headers=headers,
            proxy=proxy or None,
        )

    def feed_url(self, identity: str) -> str:
        return f"{self.endpoint}/{quote(identity, safe='')}/rss"

    async def fetch(self, identity: str) -> list[FeedItem]:
        """Fetch and parse the feed of ``identity``.

        Raises:
            FetchFailed: Network error, HTTP error status, oversized response,
                or a malformed feed. No partial results are returned.
        """
        url = self.feed_url(identity)
        try:
            resp = await self._http.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchFailed(identity, str(e) or type(e).__name__) from e

        # --- Response size check ---
        content_length = len(resp.content)
        if content_length > _MAX_RESPONSE_BYTES:
            logger.warning("feed_response_too_large", identity=identity, size=content_length)
            raise FetchFailed(identity, f"response too large: {content_length} bytes (max {_MAX_RESPONSE_BYTES})")

        feed = feedparser.parse(resp.content)
        if feed.bozo and not feed.entries:
            raise FetchFailed(identity, f"malformed feed: {feed.get('bozo_exception', 'unknown error')}")

        feed_title = feed.feed.get("title", identity)
        items = [
            FeedItem(
                link=entry.get("link", ""),
                author=entry.get("author", "") or feed_title,
                description=entry.get("summary", ""),
                title=entry.get("title", ""),
                published_at=_published_millis(entry),
            )
            for entry in feed.entries
        ]

        logger.debug("feed_fetched", identity=identity, items=len(items))
        return items

    async def close(self) -> None:
        await self._http.aclose()
