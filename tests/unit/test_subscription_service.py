"""Tests for the subscription store + index facade."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from nitterwatch.errors import (
    AlreadySubscribed,
    FetchFailed,
    IndexConsistencyError,
    InvalidIdentity,
    NotSubscribed,
)
from nitterwatch.subscriptions.index import SubscriptionIndex
from nitterwatch.subscriptions.models import ChannelRef
from nitterwatch.subscriptions.service import SubscriptionService
from nitterwatch.subscriptions.store import SubscriptionStore

_CHAT_A = ChannelRef(platform="telegram", channel_id="-100", guild_id="-100")
_CHAT_B = ChannelRef(platform="telegram", channel_id="-200", guild_id="-200")


def _make_service(repo, feeds=None, verify=False) -> SubscriptionService:
    return SubscriptionService(
        SubscriptionStore(repo),
        SubscriptionIndex(),
        feeds=feeds,
        verify_on_subscribe=verify,
    )


class TestSubscribe:
    async def test_subscribe_indexes_and_persists(self, memory_repo) -> None:
        service = _make_service(memory_repo)

        record = await service.subscribe(_CHAT_A, "alice", "telegram:1")

        assert record.feed_identity == "alice"
        assert record.bot_id == "telegram:1"
        assert record.watermark is None
        bucket = service.index.bucket("alice")
        assert [(entry.ref, entry.record) for entry in bucket] == [(_CHAT_A, record)]
        assert memory_repo.payloads[_CHAT_A] == {
            "tweet": [{"bot_id": "telegram:1", "feed_identity": "alice", "watermark": None}]
        }

    async def test_second_subscribe_fails(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")

        with pytest.raises(AlreadySubscribed):
            await service.subscribe(_CHAT_A, "alice", "telegram:1")

        assert len(service.index.bucket("alice")) == 1
        assert len(await service.list_subscriptions(_CHAT_A)) == 1

    async def test_identity_is_normalized(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "  @alice ", "telegram:1")

        with pytest.raises(AlreadySubscribed):
            await service.subscribe(_CHAT_A, "alice", "telegram:1")

    async def test_invalid_identity(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        with pytest.raises(InvalidIdentity):
            await service.subscribe(_CHAT_A, "../etc", "telegram:1")
        assert memory_repo.upserts == 0

    async def test_same_identity_in_two_channels(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        await service.subscribe(_CHAT_B, "alice", "telegram:2")

        refs = [entry.ref for entry in service.index.bucket("alice")]
        assert refs == [_CHAT_A, _CHAT_B]

    async def test_new_watcher_inherits_shared_watermark(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        service.index.advance_watermark("alice", 5000)

        record = await service.subscribe(_CHAT_B, "alice", "telegram:2")

        assert record.watermark == 5000
        assert memory_repo.payloads[_CHAT_B]["tweet"][0]["watermark"] == 5000

    async def test_verification_failure_does_not_subscribe(self, memory_repo) -> None:
        feeds = AsyncMock()
        feeds.fetch.side_effect = FetchFailed("ghost", "404")
        service = _make_service(memory_repo, feeds=feeds, verify=True)

        with pytest.raises(FetchFailed):
            await service.subscribe(_CHAT_A, "ghost", "telegram:1")

        assert service.index.bucket("ghost") == []
        assert memory_repo.upserts == 0

    async def test_verification_success(self, memory_repo) -> None:
        feeds = AsyncMock()
        feeds.fetch.return_value = []
        service = _make_service(memory_repo, feeds=feeds, verify=True)

        await service.subscribe(_CHAT_A, "alice", "telegram:1")

        feeds.fetch.assert_awaited_once_with("alice")
        assert len(service.index.bucket("alice")) == 1

    async def test_slow_verification_does_not_block_other_commands(self, memory_repo) -> None:
        release = asyncio.Event()
        feeds = AsyncMock()

        async def fetch(identity: str):
            if identity == "slow":
                await release.wait()
            return []

        feeds.fetch.side_effect = fetch
        service = _make_service(memory_repo, feeds=feeds, verify=True)
        pending = asyncio.create_task(service.subscribe(_CHAT_A, "slow", "telegram:1"))
        await asyncio.sleep(0)

        await service.subscribe(_CHAT_B, "alice", "telegram:2")
        await service.unsubscribe(_CHAT_B, "alice")
        assert not pending.done()

        release.set()
        record = await pending
        assert record.feed_identity == "slow"

    async def test_duplicate_during_verification_is_rejected(self, memory_repo) -> None:
        release = asyncio.Event()
        feeds = AsyncMock()

        async def fetch(identity: str):
            await release.wait()
            return []

        feeds.fetch.side_effect = fetch
        service = _make_service(memory_repo, feeds=feeds, verify=True)
        first = asyncio.create_task(service.subscribe(_CHAT_A, "alice", "telegram:1"))
        second = asyncio.create_task(service.subscribe(_CHAT_A, "alice", "telegram:1"))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert sum(isinstance(r, AlreadySubscribed) for r in results) == 1
        assert len(service.index.bucket("alice")) == 1

    async def test_failed_write_changes_nothing(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        memory_repo.fail_next_upsert = RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            await service.subscribe(_CHAT_A, "alice", "telegram:1")

        assert await service.list_subscriptions(_CHAT_A) == []
        assert service.index.bucket("alice") == []

    async def test_indexed_but_not_stored_aborts(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        subscription_set = await service.store.get_set(_CHAT_A)
        subscription_set.records.clear()

        with pytest.raises(IndexConsistencyError):
            await service.subscribe(_CHAT_A, "alice", "telegram:1")
        assert subscription_set.records == []


class TestUnsubscribe:
    async def test_unsubscribe_last_watcher_empties_bucket(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")

        await service.unsubscribe(_CHAT_A, "alice")

        assert service.index.bucket("alice") == []
        assert "alice" not in service.index.identities()
        assert memory_repo.payloads[_CHAT_A] == {"tweet": []}

    async def test_unsubscribe_keeps_other_channels(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        await service.subscribe(_CHAT_B, "alice", "telegram:2")

        await service.unsubscribe(_CHAT_A, "@alice")

        refs = [entry.ref for entry in service.index.bucket("alice")]
        assert refs == [_CHAT_B]

    async def test_not_subscribed(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        with pytest.raises(NotSubscribed):
            await service.unsubscribe(_CHAT_A, "alice")

    async def test_stored_but_not_indexed_aborts(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        service.index.on_remove(_CHAT_A, "alice")
        upserts = memory_repo.upserts

        with pytest.raises(IndexConsistencyError):
            await service.unsubscribe(_CHAT_A, "alice")

        # The store mutation was aborted
        assert [r.feed_identity for r in await service.list_subscriptions(_CHAT_A)] == ["alice"]
        assert memory_repo.upserts == upserts


class TestList:
    async def test_list_lazily_initializes_empty(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        assert await service.list_subscriptions(_CHAT_A) == []

    async def test_list_in_subscription_order(self, memory_repo) -> None:
        service = _make_service(memory_repo)
        await service.subscribe(_CHAT_A, "alice", "telegram:1")
        await service.subscribe(_CHAT_A, "bob", "telegram:1")

        records = await service.list_subscriptions(_CHAT_A)

        assert [r.feed_identity for r in records] == ["alice", "bob"]
