"""Cooperative cursor over the feed identities of the subscription index."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nitterwatch.subscriptions.index import SubscriptionIndex


class PollCursor:
    """Hands out one feed identity per call, round-robin.

    Works on a snapshot of ``index.identities()`` taken when the previous
    snapshot is used up, so identities added mid-round are picked up on the
    next round and removed ones are skipped.
    """

    def __init__(self, index: SubscriptionIndex) -> None:
        self.index = index
        self.snapshot: list[str] = []
        self.position = 0
        self.rounds = 0

    def next_identity(self) -> str | None:
        """Return the next identity that still has watchers, or None if there is none."""
        refreshed = False
        while True:
            if self.position >= len(self.snapshot):
                if refreshed:
                    return None
                self.snapshot = self.index.identities()
                self.position = 0
                self.rounds += 1
                refreshed = True
                if not self.snapshot:
                    return None

            identity = self.snapshot[self.position]
            self.position += 1
            if self.index.bucket(identity):
                return identity
