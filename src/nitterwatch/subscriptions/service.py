"""Command-side facade: subscribe, unsubscribe, list_subscriptions.

Each mutation updates the store and mirrors it into the index before the
call returns. The store applies its in-memory change only after its awaited
write, and the index update follows with no await in between, so a poll tick
never sees one without the other.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from nitterwatch.errors import AlreadySubscribed, FetchFailed, IndexConsistencyError
from nitterwatch.feeds import normalize_identity, strip_identity

if TYPE_CHECKING:
    from nitterwatch.feeds.client import FeedClient
    from nitterwatch.subscriptions.index import SubscriptionIndex
    from nitterwatch.subscriptions.models import ChannelRef, ChannelSubscriptionSet, WatcherRecord
    from nitterwatch.subscriptions.store import SubscriptionStore

logger = structlog.get_logger()


class SubscriptionService:
    """Entry points for the chat command surface."""

    def __init__(
        self,
        store: SubscriptionStore,
        index: SubscriptionIndex,
        feeds: FeedClient | None = None,
        verify_on_subscribe: bool = True,
    ) -> None:
        self.store = store
        self.index = index
        self.feeds = feeds
        self.verify_on_subscribe = verify_on_subscribe
        self._lock = asyncio.Lock()

    async def subscribe(self, ref: ChannelRef, identity: str, bot_id: str) -> WatcherRecord:
        """Start watching ``identity`` in channel ``ref``.

        The feed is verified before the command lock is taken, so a slow feed
        does not hold up other channels' commands.

        Raises:
            InvalidIdentity: ``identity`` is not a usable user name.
            AlreadySubscribed: The channel already watches it.
            FetchFailed: Verification is on and the feed could not be fetched.
            IndexConsistencyError: The index already holds the pair.
        """
        identity = normalize_identity(identity)
        subscription_set = await self.store.get_set(ref)
        if subscription_set.find(identity) is not None:
            raise AlreadySubscribed(identity)

        if self.verify_on_subscribe and self.feeds is not None:
            try:
                await self.feeds.fetch(identity)
            except FetchFailed:
                logger.info("subscribe_verification_failed", identity=identity)
                raise

        async with self._lock:
            if subscription_set.find(identity) is None and self.index.contains(ref, identity):
                msg = f"{ref} is indexed for {identity!r} but not stored"
                raise IndexConsistencyError(msg)

            record = await self.store.add_subscription(
                ref, identity, bot_id, watermark=self.index.watermark(identity)
            )
            stored_watermark = record.watermark
            self.index.on_add(subscription_set, record)
            if record.watermark != stored_watermark:
                # A poll advanced the bucket while the record was being written
                await self._save_aligned(subscription_set)
        return record

    async def _save_aligned(self, subscription_set: ChannelSubscriptionSet) -> None:
        try:
            await self.store.save([subscription_set])
        except Exception as e:
            # The set is indexed now, so the next watermark save covers it
            logger.error("watermark_save_failed", channel_id=subscription_set.ref.channel_id, error=str(e))

    async def unsubscribe(self, ref: ChannelRef, identity: str) -> None:
        """Stop watching ``identity`` in channel ``ref``.

        Raises:
            NotSubscribed: The channel does not watch it.
            IndexConsistencyError: The store has the record but the index does not.
        """
        identity = strip_identity(identity)
        async with self._lock:
            subscription_set = await self.store.get_set(ref)
            if subscription_set.find(identity) is not None and not self.index.contains(ref, identity):
                msg = f"{ref} is stored for {identity!r} but not indexed"
                raise IndexConsistencyError(msg)

            await self.store.remove_subscription(ref, identity)
            self.index.on_remove(ref, identity)

    async def list_subscriptions(self, ref: ChannelRef) -> list[WatcherRecord]:
        return await self.store.list_subscriptions(ref)
