"""Single-pass runner and the watch loop.

``run_one_pass`` drives one enumeration pass against a live session and
turns every failure into a failed run. ``WatchScheduler`` repeats passes
until its cancellation token is set, keeping the process alive through
failed passes.

Example:
    >>> import asyncio
    >>> from scrollspine.core.config import Settings
    >>> from scrollspine.storage import MemoryStore, RunCoordinator
    >>> from scrollspine.testing import FakeBrowserSession, FakeClock
    >>> from scrollspine.watch.scheduler import run_one_pass
    >>> async def demo():
    ...     clock = FakeClock()
    ...     session = FakeBrowserSession.with_items([("a1", "Alpha"), ("b2", "Beta")])
    ...     coordinator = RunCoordinator([MemoryStore()])
    ...     await coordinator.initialize()
    ...     outcome = await run_one_pass(session, coordinator, settings=Settings(), sleep=clock.sleep)
    ...     return outcome.ok, outcome.result.new_count
    >>> asyncio.run(demo())
    (True, 2)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from scrollspine.auth.recovery import AuthGate
from scrollspine.browser.lease import SessionLease
from scrollspine.core.exceptions import AuthRecoveryError, ConfigurationError, SessionDeadError
from scrollspine.models.run import RunStats
from scrollspine.models.scan import PassFailed, PassOk, PassOutcome, ScanResult
from scrollspine.protocols.notification import NotificationEvent
from scrollspine.protocols.progress import NullProgressReporter, ProgressEvent, ProgressStage
from scrollspine.scraper.extractor import extract_items
from scrollspine.scraper.navigator import count_panel_items, navigate_home, open_item_panel, panel_items
from scrollspine.scraper.scroller import ScrollConfig, scroll_until_exhausted
from scrollspine.watch.interval import format_interval, parse_interval

if TYPE_CHECKING:
    from scrollspine.core.cancellation import CancellationToken
    from scrollspine.core.config import Settings
    from scrollspine.protocols.browser import BrowserSession
    from scrollspine.protocols.notification import Notifier
    from scrollspine.protocols.progress import ProgressReporter
    from scrollspine.storage.coordinator import RunCoordinator

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
SessionFactory = Callable[[bool], Awaitable["BrowserSession"]]
"""Launches a session; the argument forces a visible window."""

SLEEP_TICK = 1.0


async def run_one_pass(
    session: BrowserSession,
    coordinator: RunCoordinator,
    previous_ids: Iterable[str] = (),
    *,
    settings: Settings,
    auth_gate: AuthGate | None = None,
    progress: ProgressReporter | None = None,
    pass_number: int = 0,
    sleep: Sleep = asyncio.sleep,
) -> PassOutcome:
    """Run one enumeration pass.

    Start run, navigate, authenticate, open the panel, scroll until
    exhausted, extract every item into the coordinator, compute the delta
    against ``previous_ids`` and complete the run. Any exception marks the
    run failed and is returned as PassFailed; nothing previously confirmed
    is deleted.

    Args:
        session: Live browser session, held exclusively by the caller.
        coordinator: Initialized run coordinator.
        previous_ids: Ids observed by the last successful pass.
        settings: Timeouts, delays and scroll tuning.
        auth_gate: Gate to reuse across passes. A fresh one is built if omitted.
        progress: Optional progress reporter.
        pass_number: Attached to progress events.
        sleep: Awaitable sleep, injectable for tests.
    """
    progress = progress or NullProgressReporter()
    auth_gate = auth_gate or AuthGate(settings, sleep=sleep)

    def _report(stage: ProgressStage, message: str = "", current: int = 0, total: int = 0) -> None:
        progress.report(
            ProgressEvent(
                stage=stage,
                message=message,
                current=current,
                total=total,
                pass_number=pass_number,
            )
        )

    progress.start()
    try:
        run_id = await coordinator.start_run()

        _report(ProgressStage.NAVIGATING, f"Loading {settings.target_url}")
        await navigate_home(session, settings, sleep=sleep)

        _report(ProgressStage.AUTHENTICATING)
        await auth_gate.ensure_authenticated(session)

        _report(ProgressStage.OPENING)
        panel = await open_item_panel(session, settings, sleep=sleep)
        logger.info(f"Using item panel from {panel.source}")

        await scroll_until_exhausted(
            session,
            panel.container,
            lambda: count_panel_items(session, panel),
            ScrollConfig.from_settings(settings),
            sleep=sleep,
            progress=progress,
        )

        items = await panel_items(session, panel)
        _report(ProgressStage.EXTRACTING, f"Extracting {len(items)} items", total=len(items))
        summary = await extract_items(
            session,
            items,
            coordinator.add,
            tooltip_timeout=settings.tooltip_timeout,
            between_hovers_delay=settings.between_hovers_delay,
            run_id=run_id,
            sleep=sleep,
            progress=progress,
        )

        result = ScanResult.from_observation(
            total_found=len(items),
            observed_ids=summary.observed_ids,
            failed=summary.failed,
            previous_ids=previous_ids,
        )

        _report(ProgressStage.STORING, f"Completing run {run_id}")
        report = await coordinator.complete_run(
            RunStats(items_found=result.total_found, items_extracted=result.extracted)
        )
    except Exception as e:
        logger.error(f"Pass failed: {type(e).__name__}: {e}")
        await coordinator.fail_run(f"{type(e).__name__}: {e}")
        _report(ProgressStage.FAILED, str(e))
        progress.finish(success=False)
        return PassFailed(
            reason=str(e),
            error_type=type(e).__name__,
            auth_related=isinstance(e, AuthRecoveryError),
            session_dead=isinstance(e, SessionDeadError),
        )

    if not report.ok:
        reason = report.failed.get(report.primary, "run was not promoted")
        _report(ProgressStage.FAILED, reason)
        progress.finish(success=False)
        return PassFailed(reason=f"{report.primary}: {reason}", error_type="StorageFlushError")

    _report(ProgressStage.COMPLETE, result.summary(), current=result.extracted, total=result.total_found)
    progress.finish(success=True)
    return PassOk(result)


class WatchScheduler:
    """Repeats passes until cancelled.

    Failed passes are logged with the retry time and notified; they never
    end the loop. The previous observed-id set only advances on success,
    so a failed pass does not distort the next delta.

    Args:
        settings: Application settings.
        coordinator: Initialized run coordinator. The caller owns its lifecycle.
        session_factory: Launches a browser session.
        notifier: Receives scan and auth events.
        lease: Lease held around each pass.
        interval: Seconds between passes. Parsed from settings if omitted.
        progress: Optional progress reporter.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock for the auth recovery deadline.
        tick: Sleep slice between cancellation checks.

    Raises:
        ConfigurationError: The interval is below ``settings.min_watch_interval``.
    """

    def __init__(
        self,
        settings: Settings,
        coordinator: RunCoordinator,
        session_factory: SessionFactory,
        *,
        notifier: Notifier | None = None,
        lease: SessionLease | None = None,
        interval: float | None = None,
        progress: ProgressReporter | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        tick: float = SLEEP_TICK,
    ) -> None:
        if interval is None:
            interval = parse_interval(settings.watch_interval, minimum=settings.min_watch_interval)
        elif interval < settings.min_watch_interval:
            raise ConfigurationError(
                f"Interval {format_interval(interval)} is below the minimum of "
                f"{format_interval(settings.min_watch_interval)}"
            )
        self.interval = interval
        self.lease = lease or SessionLease()
        self._settings = settings
        self._coordinator = coordinator
        self._session_factory = session_factory
        self._notifier = notifier
        self._progress = progress
        self._sleep = sleep
        self._tick = tick
        self._auth_gate = AuthGate(settings, notifier=notifier, clock=clock, sleep=sleep)
        self._session: BrowserSession | None = None
        self._previous_ids: frozenset[str] = frozenset()
        self._last_outcome: PassOutcome | None = None
        self.pass_count = 0

    @property
    def previous_ids(self) -> frozenset[str]:
        """Ids observed by the last successful pass."""
        return self._previous_ids

    @property
    def last_outcome(self) -> PassOutcome | None:
        return self._last_outcome

    async def run(self, token: CancellationToken) -> None:
        """Run passes until the token is cancelled, then close the session."""
        logger.info(f"Starting watch mode (interval {format_interval(self.interval)})")
        try:
            while not token.cancelled:
                await self.run_pass()
                if token.cancelled:
                    break
                await self._sleep_until_next(token)
        finally:
            await self._close_session()
            logger.info(f"Watch mode stopped after {self.pass_count} scan(s)")

    async def run_pass(self) -> PassOutcome:
        """Ensure a live session and run one pass under the lease."""
        self.pass_count += 1
        number = self.pass_count
        logger.info(f"Starting scan #{number}")

        try:
            session = await self._ensure_session()
        except Exception as e:
            logger.error(f"Could not launch browser: {e}")
            outcome: PassOutcome = PassFailed(
                reason=f"could not launch browser: {e}",
                error_type=type(e).__name__,
                session_dead=True,
            )
        else:
            async with self.lease.hold("watch"):
                try:
                    outcome = await run_one_pass(
                        session,
                        self._coordinator,
                        self._previous_ids,
                        settings=self._settings,
                        auth_gate=self._auth_gate,
                        progress=self._progress,
                        pass_number=number,
                        sleep=self._sleep,
                    )
                except Exception as e:
                    logger.exception(f"Scan #{number} raised unexpectedly: {e}")
                    outcome = PassFailed(reason=str(e), error_type=type(e).__name__)

        self._last_outcome = outcome
        retry = format_interval(self.interval)
        if isinstance(outcome, PassOk):
            self._previous_ids = outcome.result.observed_ids
            message = f"Scan #{number} complete: {outcome.result.summary()}"
            if outcome.result.has_failures:
                logger.warning(message)
            else:
                logger.info(message)
            await self._notify(
                NotificationEvent.SCAN_COMPLETE,
                message,
                {"new": outcome.result.new_count, "extracted": outcome.result.extracted},
            )
        else:
            logger.warning(f"Scan #{number} failed: {outcome.reason} - will retry in {retry}")
            # An auth failure relaunches so the next session can be headful.
            if outcome.session_dead or outcome.auth_related:
                await self._close_session()
            await self._notify(
                NotificationEvent.SCAN_FAILED,
                f"Scan #{number} failed: {outcome.reason}. Retrying in {retry}.",
                {"error_type": outcome.error_type},
            )
        return outcome

    async def _ensure_session(self) -> BrowserSession:
        if self._session is not None:
            if await self._session.is_alive():
                return self._session
            logger.warning("Browser session is dead, relaunching")
            await self._close_session()

        force_headful = isinstance(self._last_outcome, PassFailed) and self._last_outcome.auth_related
        if force_headful:
            logger.info("Previous scan failed on authentication, relaunching with a visible window")
        self._session = await self._session_factory(force_headful)
        return self._session

    async def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing session: {e}")

    async def _sleep_until_next(self, token: CancellationToken) -> None:
        logger.info(f"Next scan in {format_interval(self.interval)}")
        remaining = float(self.interval)
        while remaining > 0 and not token.cancelled:
            step = min(self._tick, remaining)
            await self._sleep(step)
            remaining -= step

    async def _notify(self, event: NotificationEvent, message: str, data: dict | None = None) -> None:
        if self._notifier is None:
            return
        result = await self._notifier.notify(event, message, data=data)
        if not result.sent and result.reason:
            logger.debug(f"Notification {event.value} not sent: {result.reason}")
