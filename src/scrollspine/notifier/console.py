"""Console notification channel.

Writes one line per notification, errors to stderr. Handy for interactive
runs where no Telegram bot is configured.

Example:
    >>> import asyncio
    >>> import io
    >>> from scrollspine.notifier.console import ConsoleNotifier
    >>> from scrollspine.protocols.notification import Notification
    >>> out = io.StringIO()
    >>> channel = ConsoleNotifier(stdout=out, show_timestamp=False)
    >>> asyncio.run(channel.send(Notification(title="Authentication recovered", message="Resuming scans")))
    True
    >>> out.getvalue()
    '[INFO] Authentication recovered: Resuming scans\\n'
"""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from typing import TextIO

from scrollspine.protocols.notification import Notification, Severity

_RANK = {severity: rank for rank, severity in enumerate(Severity)}
_TO_STDERR = frozenset({Severity.ERROR, Severity.CRITICAL})


class ConsoleNotifier:
    """Print notifications at or above ``min_severity``.

    Args:
        min_severity: Quietest severity that is printed.
        stdout: Stream for debug, info and warning lines.
        stderr: Stream for error and critical lines.
        show_timestamp: Prefix each line with the UTC time.

    Example:
        >>> import asyncio
        >>> from scrollspine.notifier.console import ConsoleNotifier
        >>> from scrollspine.protocols.notification import Notification, Severity
        >>> quiet = ConsoleNotifier(min_severity=Severity.WARNING)
        >>> asyncio.run(quiet.send(Notification(title="Scan complete", message="40 items")))
        False
    """

    LABELS = {
        Severity.DEBUG: "DEBUG",
        Severity.INFO: "INFO",
        Severity.WARNING: "WARN",
        Severity.ERROR: "ERROR",
        Severity.CRITICAL: "CRITICAL",
    }

    def __init__(
        self,
        min_severity: Severity = Severity.INFO,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        show_timestamp: bool = True,
    ) -> None:
        self.name = "console"
        self.min_severity = min_severity
        self.show_timestamp = show_timestamp
        self._out = stdout
        self._err = stderr

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def send(self, notification: Notification) -> bool:
        """Print the notification. Returns False if it was filtered out."""
        if _RANK[notification.severity] < _RANK[self.min_severity]:
            return False

        if notification.severity in _TO_STDERR:
            stream = self._err or sys.stderr
        else:
            stream = self._out or sys.stdout
        print(self.render(notification), file=stream, flush=True)
        return True

    def render(self, notification: Notification) -> str:
        line = f"[{self.LABELS[notification.severity]}] {notification.title}: {notification.message}"
        if self.show_timestamp:
            line = f"{datetime.now(UTC):%Y-%m-%d %H:%M:%S} {line}"
        return line
