"""Telegram chat surface and delivery."""
