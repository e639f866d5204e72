"""Notification protocol.

Defines the interface for delivering alerts (console, Telegram, etc.) and
the event kinds the engine raises.

Example:
    >>> from scrollspine.protocols.notification import Notification, NotificationEvent, Severity
    >>> n = Notification(
    ...     title="Authentication required",
    ...     message="Log in within 5 minutes",
    ...     severity=Severity.WARNING,
    ...     event=NotificationEvent.AUTH_FAILURE,
    ... )
    >>> n.event.value
    'auth_failure'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Severity(str, Enum):
    """Notification severity level.

    Example:
        >>> from scrollspine.protocols.notification import Severity
        >>> Severity.WARNING.value
        'warning'
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class NotificationEvent(str, Enum):
    """Kinds of events worth telling a human about.

    Each kind is rate limited independently.
    """

    AUTH_FAILURE = "auth_failure"
    AUTH_RECOVERED = "auth_recovered"
    SCAN_COMPLETE = "scan_complete"
    SCAN_FAILED = "scan_failed"
    CRITICAL_ERROR = "critical_error"

    @property
    def title(self) -> str:
        """Human-readable title.

        Example:
            >>> from scrollspine.protocols.notification import NotificationEvent
            >>> NotificationEvent.AUTH_RECOVERED.title
            'Authentication recovered'
        """
        return _TITLES[self]

    @property
    def severity(self) -> Severity:
        return _SEVERITIES[self]


_TITLES = {
    NotificationEvent.AUTH_FAILURE: "Authentication required",
    NotificationEvent.AUTH_RECOVERED: "Authentication recovered",
    NotificationEvent.SCAN_COMPLETE: "Scan complete",
    NotificationEvent.SCAN_FAILED: "Scan failed",
    NotificationEvent.CRITICAL_ERROR: "Critical error",
}

_SEVERITIES = {
    NotificationEvent.AUTH_FAILURE: Severity.WARNING,
    NotificationEvent.AUTH_RECOVERED: Severity.INFO,
    NotificationEvent.SCAN_COMPLETE: Severity.INFO,
    NotificationEvent.SCAN_FAILED: Severity.ERROR,
    NotificationEvent.CRITICAL_ERROR: Severity.CRITICAL,
}


@dataclass
class Notification:
    """A notification to send.

    Example:
        >>> from scrollspine.protocols.notification import Notification
        >>> n = Notification(title="Scan complete", message="40 items", tags=["watch"])
        >>> n.severity.value, n.tags
        ('info', ['watch'])
    """

    title: str
    message: str
    severity: Severity = Severity.INFO
    event: NotificationEvent | None = None
    data: dict[str, Any] | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class NotificationResult:
    """What happened to one notify() call.

    Example:
        >>> from scrollspine.protocols.notification import NotificationResult
        >>> NotificationResult(rate_limited=True).sent
        False
    """

    sent: bool = False
    rate_limited: bool = False
    channels: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    reason: str | None = None


@runtime_checkable
class NotificationChannel(Protocol):
    """A single delivery backend."""

    name: str

    async def send(self, notification: Notification) -> bool:
        """Send a notification. Returns True if successful."""
        ...

    async def initialize(self) -> None:
        """Initialize channel."""
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Event-level notification entry point used by the engine.

    Implementations rate limit per event kind and never raise.
    """

    async def notify(
        self,
        event: NotificationEvent,
        message: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> NotificationResult:
        ...
