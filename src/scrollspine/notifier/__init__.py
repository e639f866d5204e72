"""Notification channels and the rate-limited dispatcher."""

from scrollspine.notifier.console import ConsoleNotifier
from scrollspine.notifier.dispatcher import NotificationDispatcher, create_notifier
from scrollspine.notifier.rate_limiter import NotificationRateLimiter
from scrollspine.notifier.telegram import TelegramNotifier

__all__ = [
    "ConsoleNotifier",
    "NotificationDispatcher",
    "NotificationRateLimiter",
    "TelegramNotifier",
    "create_notifier",
]
