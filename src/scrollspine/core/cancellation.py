"""Cooperative cancellation for long-running loops.

A CancellationToken is passed explicitly into the watch loop and checked at
its suspension points (start of each pass, each sleep tick). Nothing is
pre-empted; the loop notices the request the next time it looks.

Example:
    >>> from scrollspine.core.cancellation import CancellationToken
    >>> token = CancellationToken()
    >>> token.cancelled
    False
    >>> token.cancel("SIGTERM")
    >>> token.cancelled, token.reason
    (True, 'SIGTERM')
"""

from __future__ import annotations

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)


class CancellationToken:
    """Explicit shutdown request shared between a signal handler and a loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why cancellation was requested, if it was."""
        return self._reason

    def cancel(self, reason: str = "requested") -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until cancelled or the timeout elapses.

        Returns:
            True if cancelled, False on timeout.
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            return False
        return True


def install_signal_handlers(
    token: CancellationToken,
    loop: asyncio.AbstractEventLoop | None = None,
) -> list[signal.Signals]:
    """Cancel the token on SIGINT/SIGTERM.

    Returns:
        The signals a handler was installed for. Platforms without
        loop signal support (Windows) get an empty list.
    """
    loop = loop or asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    for sig in (signal.SIGINT, signal.SIGTERM):

        def _handler(sig: signal.Signals = sig) -> None:
            logger.info(f"Received {sig.name}, shutting down gracefully...")
            token.cancel(sig.name)

        try:
            loop.add_signal_handler(sig, _handler)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)

    return installed
