"""Persistence of channel records."""
