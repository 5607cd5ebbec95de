"""Get/upsert access to persisted channel records."""

from __future__ import annotations

import copy
from typing import Any

import structlog
from sqlalchemy import select

from nitterwatch.db.engine import get_session
from nitterwatch.db.models import ChannelRecord
from nitterwatch.subscriptions.models import PAYLOAD_KEY, ChannelRef

logger = structlog.get_logger()


class ChannelRepository:
    """Reads and replaces the ``nitter`` payload of channel records."""

    async def get(self, ref: ChannelRef) -> dict[str, Any] | None:
        """Return the payload of one channel, or None if it was never stored."""
        async with get_session() as session:
            result = await session.execute(
                select(ChannelRecord.nitter).where(
                    ChannelRecord.platform == ref.platform,
                    ChannelRecord.channel_id == ref.channel_id,
                )
            )
            payload = result.scalar_one_or_none()
        return copy.deepcopy(payload) if payload is not None else None

    async def list_with_subscriptions(self) -> list[tuple[ChannelRef, dict[str, Any]]]:
        """Return every channel whose payload has at least one subscription."""
        async with get_session() as session:
            result = await session.execute(select(ChannelRecord).order_by(ChannelRecord.id))
            rows = list(result.scalars().all())

        channels = []
        for row in rows:
            payload = row.nitter or {}
            if payload.get(PAYLOAD_KEY):
                ref = ChannelRef(platform=row.platform, channel_id=row.channel_id, guild_id=row.guild_id)
                channels.append((ref, copy.deepcopy(payload)))
        return channels

    async def upsert(self, ref: ChannelRef, payload: dict[str, Any]) -> None:
        """Insert or replace the whole payload of one channel in a single transaction."""
        async with get_session() as session:
            result = await session.execute(
                select(ChannelRecord).where(
                    ChannelRecord.platform == ref.platform,
                    ChannelRecord.channel_id == ref.channel_id,
                )
            )
            row = result.scalar_one_or_none()
            if row:
                row.nitter = copy.deepcopy(payload)
                row.guild_id = ref.guild_id
            else:
                session.add(
                    ChannelRecord(
                        platform=ref.platform,
                        channel_id=ref.channel_id,
                        guild_id=ref.guild_id,
                        nitter=copy.deepcopy(payload),
                    )
                )
            await session.commit()
        logger.debug("channel_saved", platform=ref.platform, channel_id=ref.channel_id)
