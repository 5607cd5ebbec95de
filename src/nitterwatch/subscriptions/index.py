"""In-memory fan-out index: feed identity -> watching channels."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

import structlog

from nitterwatch.errors import IndexConsistencyError
from nitterwatch.subscriptions.models import ChannelRef, ChannelSubscriptionSet, WatcherRecord

logger = structlog.get_logger()


class BucketEntry(NamedTuple):
    """One watcher of a feed identity plus its owning channel set."""

    channel: ChannelSubscriptionSet
    record: WatcherRecord

    @property
    def ref(self) -> ChannelRef:
        return self.channel.ref


class SubscriptionIndex:
    """Projection of all loaded ChannelSubscriptionSets, grouped by feed identity.

    Every store mutation must be mirrored here by the same command handler
    without an intervening await. Records within one bucket share a single
    watermark: the first record's value is authoritative and
    ``advance_watermark`` is the only writer.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[BucketEntry]] = {}

    @classmethod
    def from_subscriptions(
        cls,
        channels: Iterable[tuple[ChannelRef, ChannelSubscriptionSet]],
    ) -> SubscriptionIndex:
        """Build the index from ``SubscriptionStore.list_all_subscriptions()``."""
        index = cls()
        for _ref, subscription_set in channels:
            for record in subscription_set.records:
                index._buckets.setdefault(record.feed_identity, []).append(BucketEntry(subscription_set, record))

        for identity, bucket in index._buckets.items():
            authoritative = bucket[0].record.watermark
            if any(entry.record.watermark != authoritative for entry in bucket):
                logger.warning("watermark_mismatch_aligned", identity=identity, watermark=authoritative)
                for entry in bucket:
                    entry.record.watermark = authoritative

        logger.info("index_seeded", identities=len(index._buckets))
        return index

    def on_add(self, channel: ChannelSubscriptionSet, record: WatcherRecord) -> None:
        """Mirror a record that was just added to ``channel``.

        A record joining a non-empty bucket takes the bucket's watermark, even
        if a poll advanced it after the record was created.
        """
        bucket = self._buckets.setdefault(record.feed_identity, [])
        if any(entry.ref == channel.ref for entry in bucket):
            msg = f"{channel.ref} is already indexed for {record.feed_identity!r}"
            raise IndexConsistencyError(msg)
        if bucket:
            record.watermark = bucket[0].record.watermark
        bucket.append(BucketEntry(channel, record))

    def on_remove(self, ref: ChannelRef, identity: str) -> WatcherRecord:
        """Drop the pair for ``ref`` from the bucket of ``identity``.

        Raises:
            IndexConsistencyError: The pair is not indexed, so the index and
                the store have diverged.
        """
        bucket = self._buckets.get(identity, [])
        for position, entry in enumerate(bucket):
            if entry.ref == ref and entry.record.feed_identity == identity:
                del bucket[position]
                if not bucket:
                    del self._buckets[identity]
                return entry.record
        msg = f"{ref} is not indexed for {identity!r}; data is out of sync"
        raise IndexConsistencyError(msg)

    def contains(self, ref: ChannelRef, identity: str) -> bool:
        return any(entry.ref == ref for entry in self._buckets.get(identity, []))

    def identities(self) -> list[str]:
        """Feed identities with at least one watcher, in insertion order."""
        return [identity for identity, bucket in self._buckets.items() if bucket]

    def bucket(self, identity: str) -> list[BucketEntry]:
        """Snapshot of the watchers of ``identity`` (empty if none)."""
        return list(self._buckets.get(identity, []))

    def watermark(self, identity: str) -> int | None:
        bucket = self._buckets.get(identity)
        if not bucket:
            return None
        return bucket[0].record.watermark

    def advance_watermark(self, identity: str, value: int) -> list[ChannelSubscriptionSet]:
        """Set the shared watermark on every record of the bucket.

        Returns the distinct channel sets that own those records, for
        persisting.
        """
        owners: dict[ChannelRef, ChannelSubscriptionSet] = {}
        for entry in self._buckets.get(identity, []):
            entry.record.watermark = value
            owners[entry.ref] = entry.channel
        return list(owners.values())

    def __len__(self) -> int:
        return len(self._buckets)
