"""Authentication gate with automatic and human-assisted recovery.

A pass calls ``AuthGate.ensure_authenticated`` before touching the panel.
Recovery goes through two steps:

1. Auto-recovery: reload the page, let it settle, re-detect.
2. Escalation: bring the window forward, notify a human, and poll until
   the session is authenticated or ``auth_recovery_timeout`` runs out.

Only the timeout is reported as a failure (AuthRecoveryError).

Example:
    >>> from scrollspine.auth.recovery import AuthGate
    >>> from scrollspine.core.config import Settings
    >>> gate = AuthGate(Settings())
    >>> gate.seen_authenticated
    False
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from scrollspine.auth.detector import AuthState, detect_auth_state
from scrollspine.core.exceptions import AuthRecoveryError, BrowserError, SessionDeadError
from scrollspine.protocols.notification import NotificationEvent

if TYPE_CHECKING:
    from scrollspine.core.config import Settings
    from scrollspine.protocols.browser import BrowserSession
    from scrollspine.protocols.notification import Notifier

logger = logging.getLogger(__name__)

Detector = Callable[["BrowserSession", "Settings"], Awaitable[AuthState]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class AuthGate:
    """Ensures the session is authenticated, recovering when it is not.

    Args:
        settings: Timeouts, poll interval and URL markers.
        notifier: Receives auth_failure and auth_recovered events.
        detector: Auth-state detector, injectable for tests.
        clock: Monotonic clock in seconds, injectable for tests.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        notifier: Notifier | None = None,
        detector: Detector = detect_auth_state,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._notifier = notifier
        self._detector = detector
        self._clock = clock
        self._sleep = sleep
        self._seen_authenticated = False

    @property
    def seen_authenticated(self) -> bool:
        """True once this gate has observed an authenticated page."""
        return self._seen_authenticated

    async def detect(self, session: BrowserSession) -> AuthState:
        """Detect the state, reporting a login wall after a prior login as expiry."""
        state = await self._detector(session, self._settings)
        if state == AuthState.AUTHENTICATED:
            self._seen_authenticated = True
        elif state == AuthState.LOGIN_REQUIRED and self._seen_authenticated:
            state = AuthState.SESSION_EXPIRED
        return state

    async def ensure_authenticated(self, session: BrowserSession) -> AuthState:
        """Return once the session is authenticated.

        Returns:
            The state observed before any recovery was attempted.

        Raises:
            AuthRecoveryError: No authenticated state within the timeout.
            SessionDeadError: The browser died while waiting.
        """
        initial = await self.detect(session)
        if initial == AuthState.AUTHENTICATED:
            logger.info("Authentication verified")
            return initial

        logger.info(f"Authentication state is {initial.value}, attempting recovery")
        if await self._auto_recover(session):
            return initial

        await self._escalate(session, initial)
        return initial

    async def _auto_recover(self, session: BrowserSession) -> bool:
        logger.info("Auto-recovery: attempting page refresh...")
        try:
            await session.reload(self._settings.page_load_timeout)
        except SessionDeadError:
            raise
        except BrowserError as e:
            logger.warning(f"Auto-recovery failed: could not refresh page: {e}")
            return False

        await self._sleep(self._settings.auth_settle_delay)
        if await self.detect(session) == AuthState.AUTHENTICATED:
            logger.info("Auto-recovery successful")
            return True
        return False

    async def _escalate(self, session: BrowserSession, state: AuthState) -> None:
        timeout = self._settings.auth_recovery_timeout
        poll = self._settings.auth_poll_interval

        logger.warning(f"Login required ({state.value}). Waiting up to {timeout:.0f}s for a human to log in")
        try:
            await session.bring_to_foreground()
        except SessionDeadError:
            raise
        except BrowserError as e:
            logger.warning(f"Could not bring browser to front: {e}")

        await self._notify(
            NotificationEvent.AUTH_FAILURE,
            f"Login required. Please log in within {timeout / 60:.0f} minutes.",
        )

        started = self._clock()
        deadline = started + timeout
        while True:
            try:
                current = await self.detect(session)
            except SessionDeadError:
                raise
            except BrowserError as e:
                logger.debug(f"Auth check failed while waiting for login: {e}")
                current = AuthState.UNKNOWN

            if current == AuthState.AUTHENTICATED:
                elapsed = self._clock() - started
                logger.info(f"Authentication restored after {elapsed:.0f}s. Resuming.")
                await self._notify(NotificationEvent.AUTH_RECOVERED, "Authentication restored. Resuming scans.")
                return

            remaining = deadline - self._clock()
            if remaining <= 0:
                elapsed = self._clock() - started
                raise AuthRecoveryError(
                    f"Authentication timeout - no login within {timeout:.0f}s",
                    elapsed=elapsed,
                )
            await self._sleep(min(poll, remaining))

    async def _notify(self, event: NotificationEvent, message: str) -> None:
        if self._notifier is None:
            return
        result = await self._notifier.notify(event, message)
        if not result.sent and result.reason:
            logger.debug(f"Notification {event.value} not sent: {result.reason}")
