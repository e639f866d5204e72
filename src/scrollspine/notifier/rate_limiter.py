"""Per-event notification rate limiting.

Example:
    >>> from scrollspine.notifier.rate_limiter import NotificationRateLimiter
    >>> now = [0.0]
    >>> limiter = NotificationRateLimiter(cooldown=60.0, clock=lambda: now[0])
    >>> limiter.can_notify("auth_failure")
    True
    >>> limiter.record("auth_failure")
    >>> limiter.can_notify("auth_failure"), limiter.can_notify("scan_complete")
    (False, True)
    >>> now[0] = 60.0
    >>> limiter.can_notify("auth_failure")
    True
"""

from __future__ import annotations

import time
from collections.abc import Callable


class NotificationRateLimiter:
    """Tracks the last send time per event kind.

    Args:
        cooldown: Minimum seconds between two notifications of one kind.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(self, cooldown: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if cooldown < 0:
            raise ValueError("cooldown cannot be negative")
        self.cooldown = cooldown
        self._clock = clock
        self._last_sent: dict[str, float] = {}

    def can_notify(self, event: str) -> bool:
        last = self._last_sent.get(event)
        return last is None or self._clock() - last >= self.cooldown

    def record(self, event: str) -> None:
        """Record a successful send. Call only after delivery succeeded."""
        self._last_sent[event] = self._clock()

    def remaining(self, event: str) -> float:
        """Seconds until the event may be sent again (0 if now)."""
        last = self._last_sent.get(event)
        if last is None:
            return 0.0
        return max(0.0, self.cooldown - (self._clock() - last))

    def reset(self) -> None:
        self._last_sent.clear()
