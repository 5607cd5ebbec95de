"""nitterwatch - Twitter feed subscriptions for chat channels via Nitter."""

__version__ = "0.1.0"
