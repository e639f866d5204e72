"""Exclusive access to the shared browser session.

Navigation destroys whatever another consumer is evaluating on the page,
so every consumer holds the lease while it touches the session.

Example:
    >>> import asyncio
    >>> from scrollspine.browser.lease import SessionLease
    >>> async def demo():
    ...     lease = SessionLease()
    ...     async with lease.hold("scan") as holder:
    ...         return holder, lease.owner
    >>> asyncio.run(demo())
    ('scan', 'scan')
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class SessionLease:
    """An asyncio.Lock that remembers who holds it."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._owner: str | None = None

    @property
    def owner(self) -> str | None:
        """Name of the current holder, or None when free."""
        return self._owner

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, owner: str) -> AsyncIterator[str]:
        """Hold the lease for the duration of the block."""
        if self._lock.locked():
            logger.debug(f"{owner} waiting for session lease held by {self._owner}")
        async with self._lock:
            self._owner = owner
            try:
                yield owner
            finally:
                self._owner = None
