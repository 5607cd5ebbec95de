"""CRUD facade over the persisted per-channel subscription sets."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from nitterwatch.errors import AlreadySubscribed, NotSubscribed
from nitterwatch.subscriptions.models import ChannelRef, ChannelSubscriptionSet, WatcherRecord

if TYPE_CHECKING:
    from nitterwatch.db.channels import ChannelRepository

logger = structlog.get_logger()


class SubscriptionStore:
    """Keeps one live ChannelSubscriptionSet per channel and persists it whole.

    The live sets are shared with the SubscriptionIndex, so a record the index
    hands to the poll engine is the same object this store serializes.
    Mutations persist the new payload first and touch memory only after the
    write succeeded. All writes go through one lock so a watermark save never
    overwrites a concurrent command's write with a stale payload.
    """

    def __init__(self, repository: ChannelRepository) -> None:
        self._repo = repository
        self._sets: dict[ChannelRef, ChannelSubscriptionSet] = {}
        self._write_lock = asyncio.Lock()

    async def list_all_subscriptions(self) -> list[tuple[ChannelRef, ChannelSubscriptionSet]]:
        """Load every channel with a non-empty subscription set."""
        channels = await self._repo.list_with_subscriptions()
        result = []
        for ref, payload in channels:
            subscription_set = self._sets.get(ref)
            if subscription_set is None:
                subscription_set = ChannelSubscriptionSet.from_payload(ref, payload)
                self._sets[ref] = subscription_set
            if subscription_set.records:
                result.append((ref, subscription_set))
        logger.info("subscriptions_loaded", channels=len(result))
        return result

    async def get_set(self, ref: ChannelRef) -> ChannelSubscriptionSet:
        """Return the live set of a channel, lazily initialized to empty."""
        subscription_set = self._sets.get(ref)
        if subscription_set is None:
            payload = await self._repo.get(ref)
            # Another coroutine may have loaded it while we were waiting
            subscription_set = self._sets.setdefault(ref, ChannelSubscriptionSet.from_payload(ref, payload))
        return subscription_set

    async def add_subscription(
        self,
        ref: ChannelRef,
        identity: str,
        bot_id: str,
        watermark: int | None = None,
    ) -> WatcherRecord:
        """Append a watcher record for ``identity`` to the channel and persist it.

        ``watermark`` lets a new watcher join an identity that other channels
        already watch without disagreeing with their shared watermark.

        Raises:
            AlreadySubscribed: The channel already watches ``identity``.
        """
        subscription_set = await self.get_set(ref)
        async with self._write_lock:
            if subscription_set.find(identity) is not None:
                raise AlreadySubscribed(identity)
            record = WatcherRecord(bot_id=bot_id, feed_identity=identity, watermark=watermark)
            await self._repo.upsert(ref, subscription_set.to_payload([*subscription_set.records, record]))
            subscription_set.records.append(record)

        logger.info("subscription_added", channel_id=ref.channel_id, platform=ref.platform, identity=identity)
        return record

    async def remove_subscription(self, ref: ChannelRef, identity: str) -> WatcherRecord:
        """Remove the channel's watcher record for ``identity`` and persist the set.

        Raises:
            NotSubscribed: The channel does not watch ``identity``.
        """
        subscription_set = await self.get_set(ref)
        async with self._write_lock:
            record = subscription_set.find(identity)
            if record is None:
                raise NotSubscribed(identity)
            remaining = [r for r in subscription_set.records if r is not record]
            await self._repo.upsert(ref, subscription_set.to_payload(remaining))
            subscription_set.records.remove(record)

        logger.info("subscription_removed", channel_id=ref.channel_id, platform=ref.platform, identity=identity)
        return record

    async def list_subscriptions(self, ref: ChannelRef) -> list[WatcherRecord]:
        subscription_set = await self.get_set(ref)
        return list(subscription_set.records)

    async def save(self, sets: Iterable[ChannelSubscriptionSet]) -> None:
        """Persist the current payload of each given set (watermark updates)."""
        async with self._write_lock:
            for subscription_set in sets:
                await self._repo.upsert(subscription_set.ref, subscription_set.to_payload())
