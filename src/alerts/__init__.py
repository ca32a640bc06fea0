"""Alert scheduling and Telegram delivery."""

from .scheduler import AlertScheduler, SubscriberState  # noqa: F401
from .telegram import (  # noqa: F401
    TelegramSpreadBot,
    build_alert_message,
    build_snapshot_message,
    format_funding,
    format_percent,
    format_price,
    parse_duration,
    parse_percent,
)

__all__ = [
    "AlertScheduler",
    "SubscriberState",
    "TelegramSpreadBot",
    "build_alert_message",
    "build_snapshot_message",
    "format_funding",
    "format_percent",
    "format_price",
    "parse_duration",
    "parse_percent",
]
