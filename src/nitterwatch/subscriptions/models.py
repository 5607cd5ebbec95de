"""Subscription data model: channels, watcher records and their sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Key of the subscription list inside a channel's nitter payload
PAYLOAD_KEY = "tweet"


@dataclass(frozen=True)
class ChannelRef:
    """Enough identity to route a message to one chat channel."""

    platform: str
    channel_id: str
    guild_id: str = ""


@dataclass
class WatcherRecord:
    """One subscription of one channel to one feed identity.

    ``watermark`` is the publish time (epoch millis) of the newest item already
    delivered for the identity. All records of the same identity share the
    value; only ``SubscriptionIndex.advance_watermark`` changes it.
    """

    bot_id: str
    feed_identity: str
    watermark: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "bot_id": self.bot_id,
            "feed_identity": self.feed_identity,
            "watermark": self.watermark,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatcherRecord:
        watermark = data.get("watermark")
        return cls(
            bot_id=str(data["bot_id"]),
            feed_identity=str(data["feed_identity"]),
            watermark=int(watermark) if watermark is not None else None,
        )


@dataclass
class ChannelSubscriptionSet:
    """The watcher records attached to one channel, unique by feed identity."""

    ref: ChannelRef
    records: list[WatcherRecord] = field(default_factory=list)

    def find(self, identity: str) -> WatcherRecord | None:
        for record in self.records:
            if record.feed_identity == identity:
                return record
        return None

    def identities(self) -> list[str]:
        return [record.feed_identity for record in self.records]

    def to_payload(self, records: list[WatcherRecord] | None = None) -> dict[str, Any]:
        """Serialize the set, or an alternative record list for the same channel."""
        if records is None:
            records = self.records
        return {PAYLOAD_KEY: [record.to_dict() for record in records]}

    @classmethod
    def from_payload(cls, ref: ChannelRef, payload: dict[str, Any] | None) -> ChannelSubscriptionSet:
        """Build a set from a stored payload; a missing payload yields an empty set."""
        entries = (payload or {}).get(PAYLOAD_KEY) or []
        records: list[WatcherRecord] = []
        seen: set[str] = set()
        for entry in entries:
            record = WatcherRecord.from_dict(entry)
            if record.feed_identity in seen:
                continue
            seen.add(record.feed_identity)
            records.append(record)
        return cls(ref=ref, records=records)
