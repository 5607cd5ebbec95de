"""Poll engine - one feed identity per tick, watermark dedup, fan-out delivery."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from nitterwatch.errors import FetchFailed
from nitterwatch.poller.cursor import PollCursor

if TYPE_CHECKING:
    from nitterwatch.feeds.client import FeedClient, FeedItem
    from nitterwatch.rendering import BaseRenderer, Notification
    from nitterwatch.subscriptions.index import BucketEntry, SubscriptionIndex
    from nitterwatch.subscriptions.models import ChannelRef, ChannelSubscriptionSet
    from nitterwatch.subscriptions.store import SubscriptionStore

logger = structlog.get_logger()


class Delivery(Protocol):
    """Message-send capability addressed by bot id."""

    async def send_message(self, bot_id: str, channel_id: str, message: Notification, guild_id: str) -> None: ...


def _now_millis() -> int:
    return int(time.time() * 1000)


class PollEngine:
    """Fetches one identity per tick and fans new items out to its watchers.

    Ticks never overlap: the run loop awaits each tick before sleeping the
    remainder of the interval, and ``tick()`` itself is single-flight.
    """

    def __init__(
        self,
        index: SubscriptionIndex,
        store: SubscriptionStore,
        feeds: FeedClient,
        renderer: BaseRenderer,
        delivery: Delivery,
        interval: float,
    ) -> None:
        self.index = index
        self.store = store
        self.feeds = feeds
        self.renderer = renderer
        self.delivery = delivery
        self.interval = interval
        self.cursor = PollCursor(index)
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0
        self.delivered = 0
        self.fetch_failures = 0
        self.last_identity: str | None = None

    async def start(self) -> None:
        """Start the polling background task."""
        self._task = asyncio.create_task(self._run_loop(), name="poll_engine")
        logger.info("poll_engine_started", interval=self.interval, renderer=self.renderer.kind)

    async def stop(self) -> None:
        """Stop polling (process teardown)."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("poll_engine_stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        """Main loop: sleep, tick, repeat at a fixed cadence."""
        loop = asyncio.get_running_loop()
        delay = self.interval
        while True:
            await asyncio.sleep(delay)
            started = loop.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("poll_tick_error", error=str(e))
            delay = max(0.0, self.interval - (loop.time() - started))

    async def tick(self) -> str | None:
        """Process the next identity. Returns it, or None when nothing is watched."""
        async with self._tick_lock:
            identity = self.cursor.next_identity()
            if identity is None:
                return None
            self.ticks += 1
            self.last_identity = identity
            try:
                await self._process(identity)
            except Exception as e:
                logger.error("poll_identity_error", identity=identity, error=str(e), exc_type=type(e).__name__)
            return identity

    async def _process(self, identity: str) -> None:
        if not self.index.bucket(identity):
            return

        logger.debug("poll_identity", identity=identity)
        try:
            items = await self.feeds.fetch(identity)
        except FetchFailed as e:
            self.fetch_failures += 1
            logger.warning("feed_fetch_failed", identity=identity, error=e.reason)
            return

        if not self.index.bucket(identity):
            # Every watcher left while the fetch was in flight
            return

        watermark = self.index.watermark(identity)
        if watermark is None:
            baseline = items[0].published_at if items else _now_millis()
            owners = self.index.advance_watermark(identity, baseline)
            logger.info("watermark_baseline", identity=identity, watermark=baseline, items=len(items))
            await self._persist(owners)
            return

        new_items = [item for item in items if item.published_at > watermark]
        if not new_items:
            return

        rendered = await asyncio.gather(
            *(self.renderer.render(item) for item in new_items),
            return_exceptions=True,
        )
        owners: dict[ChannelRef, ChannelSubscriptionSet] = {}
        for item, result in zip(new_items, rendered, strict=True):
            if isinstance(result, BaseException):
                logger.warning("render_failed", identity=identity, link=item.link, error=str(result))
                continue
            for owner in self._advance(identity, item):
                owners[owner.ref] = owner
            for entry in self.index.bucket(identity):
                await self._deliver(entry, result)

        await self._persist(owners.values())

    def _advance(self, identity: str, item: FeedItem) -> list[ChannelSubscriptionSet]:
        # Monotonic: a newest-first batch must not pull the watermark back
        current = self.index.watermark(identity) or 0
        return self.index.advance_watermark(identity, max(current, item.published_at))

    async def _deliver(self, entry: BucketEntry, message: Notification) -> None:
        try:
            await self.delivery.send_message(entry.record.bot_id, entry.ref.channel_id, message, entry.ref.guild_id)
        except Exception as e:
            logger.error(
                "delivery_failed",
                bot_id=entry.record.bot_id,
                channel_id=entry.ref.channel_id,
                identity=entry.record.feed_identity,
                error=str(e),
            )
            return
        self.delivered += 1
        logger.info("notification_delivered", channel_id=entry.ref.channel_id, identity=entry.record.feed_identity)

    async def _persist(self, owners: Iterable[ChannelSubscriptionSet]) -> None:
        try:
            await self.store.save(owners)
        except Exception as e:
            logger.error("watermark_save_failed", error=str(e))

    def get_status(self) -> dict[str, Any]:
        """Get engine status."""
        return {
            "running": self.is_running,
            "interval": self.interval,
            "renderer": self.renderer.kind,
            "identities": len(self.index),
            "cursor_position": self.cursor.position,
            "cursor_snapshot": len(self.cursor.snapshot),
            "ticks": self.ticks,
            "delivered": self.delivered,
            "fetch_failures": self.fetch_failures,
            "last_identity": self.last_identity,
        }
