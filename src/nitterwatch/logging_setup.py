"""structlog configuration: console or JSON output, Telegram and proxy secrets redacted."""

import logging
import re
from typing import Any, Literal

import structlog

# Bot API URLs embed the token: https://api.telegram.org/bot<id>:<secret>/sendPhoto
_BOT_TOKEN = re.compile(r"\b(bot)?(\d{5,}):[A-Za-z0-9_-]{20,}")

# user:password@ inside http_proxy and similar URLs
_URL_CREDENTIALS = re.compile(r"//[^/@\s]+@")

_SECRET_KEYS = frozenset({"token", "bot_token", "telegram_bot_token"})


def _redact(value: str) -> str:
    value = _BOT_TOKEN.sub(lambda m: f"{m.group(1) or ''}{m.group(2)}:***", value)
    return _URL_CREDENTIALS.sub("//***@", value)


def redact_secrets(
    logger: object, method_name: str, event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor hiding bot tokens and proxy credentials.

    Error strings from python-telegram-bot and httpx can quote request URLs,
    so every string value is scanned, not just the known secret keys.
    """
    for key, value in event_dict.items():
        if not isinstance(value, str):
            continue
        if key in _SECRET_KEYS:
            event_dict[key] = "***"
        else:
            event_dict[key] = _redact(value)
    return event_dict


def setup_logging(level: str = "INFO", fmt: Literal["console", "json"] = "console") -> None:
    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelNamesMapping()[level]),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
