"""Exception hierarchy for nitterwatch."""

from __future__ import annotations


class NitterWatchError(Exception):
    """Base class for all nitterwatch errors."""


class FetchFailed(NitterWatchError):
    """A feed could not be fetched or parsed."""

    def __init__(self, identity: str, reason: str) -> None:
        super().__init__(f"Fetching feed of {identity!r} failed: {reason}")
        self.identity = identity
        self.reason = reason


class RenderFailed(NitterWatchError):
    """A feed item could not be turned into a notification."""

    def __init__(self, link: str, reason: str) -> None:
        super().__init__(f"Rendering {link} failed: {reason}")
        self.link = link
        self.reason = reason


class DeliveryFailed(NitterWatchError):
    """A notification could not be sent to a channel."""

    def __init__(self, bot_id: str, channel_id: str, reason: str) -> None:
        super().__init__(f"Delivery via {bot_id} to {channel_id} failed: {reason}")
        self.bot_id = bot_id
        self.channel_id = channel_id
        self.reason = reason


class SubscriptionError(NitterWatchError):
    """User-input error from a subscription command."""


class AlreadySubscribed(SubscriptionError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"{identity} is already in the watch list.")
        self.identity = identity


class NotSubscribed(SubscriptionError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"{identity} is not in the watch list.")
        self.identity = identity


class InvalidIdentity(SubscriptionError):
    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Invalid user {value!r}: {reason}")
        self.value = value
        self.reason = reason


class IndexConsistencyError(NitterWatchError):
    """The in-memory subscription index and the persisted store disagree.

    This is a programming defect, never a user error.
    """
