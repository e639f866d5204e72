"""Rate-limited fan-out of notification events to channels.

Example:
    >>> import asyncio
    >>> from scrollspine.notifier.dispatcher import NotificationDispatcher
    >>> from scrollspine.protocols.notification import NotificationEvent
    >>> result = asyncio.run(NotificationDispatcher([]).notify(NotificationEvent.SCAN_COMPLETE, "40 items"))
    >>> result.sent, result.reason
    (False, 'no notification channels configured')
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from scrollspine.notifier.console import ConsoleNotifier
from scrollspine.notifier.rate_limiter import NotificationRateLimiter
from scrollspine.notifier.telegram import TelegramNotifier
from scrollspine.protocols.notification import (
    Notification,
    NotificationChannel,
    NotificationEvent,
    NotificationResult,
)

if TYPE_CHECKING:
    from scrollspine.core.config import Settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Send events to every channel, rate limited per event kind.

    notify() never raises. A channel that fails or raises is recorded in the
    result's errors and the remaining channels are still tried. The cooldown
    starts only when at least one channel delivered.

    Example:
        >>> import asyncio
        >>> import io
        >>> from scrollspine.notifier.console import ConsoleNotifier
        >>> from scrollspine.notifier.dispatcher import NotificationDispatcher
        >>> from scrollspine.protocols.notification import NotificationEvent
        >>> out = io.StringIO()
        >>> dispatcher = NotificationDispatcher(
        ...     [ConsoleNotifier(stdout=out, show_timestamp=False)], cooldown=60.0
        ... )
        >>> first = asyncio.run(dispatcher.notify(NotificationEvent.SCAN_COMPLETE, "40 items"))
        >>> second = asyncio.run(dispatcher.notify(NotificationEvent.SCAN_COMPLETE, "41 items"))
        >>> first.channels, second.rate_limited
        (['console'], True)
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        *,
        cooldown: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channels = list(channels)
        self._limiter = NotificationRateLimiter(cooldown, clock=clock)

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    @property
    def limiter(self) -> NotificationRateLimiter:
        return self._limiter

    async def initialize(self) -> None:
        for channel in self._channels:
            await channel.initialize()

    async def close(self) -> None:
        for channel in self._channels:
            try:
                await channel.close()
            except Exception as e:
                logger.warning(f"Failed to close notification channel {channel.name}: {e}")

    async def notify(
        self,
        event: NotificationEvent,
        message: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> NotificationResult:
        if not self._channels:
            return NotificationResult(reason="no notification channels configured")

        if not self._limiter.can_notify(event.value):
            minutes = self._limiter.remaining(event.value) / 60
            reason = f"rate limited ({minutes:.0f}m until next allowed)"
            logger.debug(f"Notification {event.value} skipped: {reason}")
            return NotificationResult(rate_limited=True, reason=reason)

        notification = Notification(
            title=event.title,
            message=message,
            severity=event.severity,
            event=event,
            data=data,
            tags=[event.value],
        )

        result = NotificationResult()
        for channel in self._channels:
            try:
                delivered = await channel.send(notification)
            except Exception as e:
                logger.warning(f"Notification channel {channel.name} raised: {e}")
                result.errors.append(f"{channel.name}: {e}")
                continue
            if delivered:
                result.channels.append(channel.name)
            else:
                result.errors.append(f"{channel.name}: not delivered")

        if result.channels:
            result.sent = True
            self._limiter.record(event.value)
        else:
            result.reason = "all notification channels failed"
        return result


def create_notifier(settings: Settings) -> NotificationDispatcher:
    """Build a dispatcher over the channels enabled in settings.

    Example:
        >>> from scrollspine.core.config import Settings
        >>> from scrollspine.notifier.dispatcher import create_notifier
        >>> create_notifier(Settings(console_notifications=True)).channels[0].name
        'console'
    """
    channels: list[NotificationChannel] = []
    if settings.console_notifications:
        channels.append(ConsoleNotifier())
    if settings.telegram_bot_token and settings.telegram_chat_id:
        channels.append(TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id))
        logger.info("Notifications: Telegram enabled")
    return NotificationDispatcher(channels, cooldown=settings.notify_cooldown_minutes * 60)
