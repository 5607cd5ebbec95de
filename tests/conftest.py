"""Shared fixtures."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from nitterwatch.subscriptions.models import ChannelRef


class MemoryRepository:
    """ChannelRepository stand-in that keeps payloads in a dict."""

    def __init__(self) -> None:
        self.payloads: dict[ChannelRef, dict[str, Any]] = {}
        self.upserts = 0
        self.fail_next_upsert: Exception | None = None

    async def get(self, ref: ChannelRef) -> dict[str, Any] | None:
        payload = self.payloads.get(ref)
        return copy.deepcopy(payload) if payload is not None else None

    async def list_with_subscriptions(self) -> list[tuple[ChannelRef, dict[str, Any]]]:
        return [(ref, copy.deepcopy(payload)) for ref, payload in self.payloads.items() if payload.get("tweet")]

    async def upsert(self, ref: ChannelRef, payload: dict[str, Any]) -> None:
        if self.fail_next_upsert is not None:
            error, self.fail_next_upsert = self.fail_next_upsert, None
            raise error
        self.payloads[ref] = copy.deepcopy(payload)
        self.upserts += 1


@pytest.fixture
def memory_repo() -> MemoryRepository:
    return MemoryRepository()
