"""SQLAlchemy ORM models."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ChannelRecord(Base):
    """One chat channel and its opaque nitter payload.

    The payload holds the channel's subscription set as
    ``{"tweet": [{"bot_id": ..., "feed_identity": ..., "watermark": ...}]}``
    and is always read and written as a whole.
    """

    __tablename__ = "channels"
    __table_args__ = (UniqueConstraint("platform", "channel_id", name="uq_channel_platform_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[str] = mapped_column(String(50), index=True)
    channel_id: Mapped[str] = mapped_column(String(100))
    guild_id: Mapped[str] = mapped_column(String(100), default="")
    nitter: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
