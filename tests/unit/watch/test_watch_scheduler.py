"""Tests for scrollspine.watch.scheduler.WatchScheduler."""

from __future__ import annotations

import sqlite3

import pytest

from scrollspine.core.cancellation import CancellationToken
from scrollspine.core.config import Settings
from scrollspine.core.exceptions import BrowserError, ConfigurationError, SessionDeadError
from scrollspine.models.run import RunStatus
from scrollspine.models.scan import PassFailed, PassOk
from scrollspine.protocols.notification import NotificationEvent
from scrollspine.storage.coordinator import RunCoordinator
from scrollspine.storage.memory import MemoryStore
from scrollspine.storage.sqlite import SQLiteStore
from scrollspine.testing import FakeBrowserSession, FakeClock, FlakyStore, RecordingNotifier
from scrollspine.watch.scheduler import WatchScheduler

ITEMS = [("g-p-a1", "Alpha"), ("g-p-b2", "Beta")]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        element_wait_timeout=0.1,
        tooltip_timeout=0.1,
        page_settle_delay=0,
        menu_animation_delay=0,
        after_scroll_delay=0,
        between_hovers_delay=0,
        auth_settle_delay=0,
        auth_recovery_timeout=10,
        auth_poll_interval=2,
        stability_threshold=2,
        watch_interval="1m",
        min_watch_interval=60,
    )


class SessionFactory:
    """Hands out queued sessions and records the headful flag of each launch."""

    def __init__(self, *sessions) -> None:
        self.sessions = list(sessions)
        self.launches: list[bool] = []

    async def __call__(self, force_headful: bool):
        self.launches.append(force_headful)
        session = self.sessions.pop(0)
        if isinstance(session, Exception):
            raise session
        return session


class DiesOnNavigate(FakeBrowserSession):
    async def navigate(self, url, timeout):
        raise SessionDeadError("Target page, context or browser has been closed")


class LocksDatabaseOnNavigate(FakeBrowserSession):
    """Takes a write lock on a database, then fails to load the page."""

    locker: sqlite3.Connection

    async def navigate(self, url, timeout):
        if not self.locker.in_transaction:
            self.locker.execute("BEGIN EXCLUSIVE")
        await super().navigate(url, timeout)


class FailsToStart:
    def start(self) -> None:
        raise RuntimeError("reporter exploded")

    def report(self, event) -> None:
        pass

    def finish(self, success: bool) -> None:
        pass


async def make_scheduler(settings, factory, **kwargs):
    clock = FakeClock()
    stores = kwargs.pop("stores", None) or [MemoryStore(clock=clock.utc)]
    coordinator = RunCoordinator(stores, clock=clock)
    await coordinator.initialize()
    notifier = kwargs.pop("notifier", RecordingNotifier())
    scheduler = WatchScheduler(
        settings,
        coordinator,
        factory,
        notifier=notifier,
        sleep=kwargs.pop("sleep", clock.sleep),
        clock=clock,
        **kwargs,
    )
    return scheduler, clock, notifier


class TestInterval:
    async def test_parsed_from_settings(self, settings):
        scheduler, _, _ = await make_scheduler(settings.model_copy(update={"watch_interval": "2m"}), SessionFactory())
        assert scheduler.interval == 120

    async def test_explicit_interval_below_minimum(self, settings):
        with pytest.raises(ConfigurationError, match="below the minimum"):
            await make_scheduler(settings, SessionFactory(), interval=30)

    async def test_settings_interval_below_minimum(self, settings):
        with pytest.raises(ConfigurationError):
            await make_scheduler(settings.model_copy(update={"watch_interval": "10s"}), SessionFactory())


class TestRunPass:
    async def test_success_updates_previous_ids_and_notifies(self, settings):
        factory = SessionFactory(FakeBrowserSession.with_items(ITEMS))
        scheduler, _, notifier = await make_scheduler(settings, factory)

        outcome = await scheduler.run_pass()

        assert isinstance(outcome, PassOk)
        assert scheduler.previous_ids == {"g-p-a1", "g-p-b2"}
        assert notifier.kinds() == [NotificationEvent.SCAN_COMPLETE]
        assert scheduler.lease.owner is None

    async def test_second_pass_reports_no_new_items(self, settings):
        factory = SessionFactory(FakeBrowserSession.with_items(ITEMS))
        scheduler, _, _ = await make_scheduler(settings, factory)

        await scheduler.run_pass()
        outcome = await scheduler.run_pass()

        assert outcome.result.new_count == 0
        assert outcome.result.unchanged_count == 2
        assert factory.launches == [False]

    async def test_failure_keeps_previous_ids(self, settings):
        session = FakeBrowserSession.with_items(ITEMS)
        scheduler, _, notifier = await make_scheduler(settings, SessionFactory(session))
        await scheduler.run_pass()

        session.navigate_error = "net::ERR_TIMED_OUT"
        outcome = await scheduler.run_pass()

        assert isinstance(outcome, PassFailed)
        assert scheduler.previous_ids == {"g-p-a1", "g-p-b2"}
        assert notifier.kinds() == [NotificationEvent.SCAN_COMPLETE, NotificationEvent.SCAN_FAILED]
        assert "Retrying in 1m" in notifier.events[-1][1]
        assert not session.closed

    async def test_dead_session_is_relaunched(self, settings):
        first = FakeBrowserSession.with_items(ITEMS)
        second = FakeBrowserSession.with_items(ITEMS)
        factory = SessionFactory(first, second)
        scheduler, _, _ = await make_scheduler(settings, factory)
        await scheduler.run_pass()

        first.dead = True
        outcome = await scheduler.run_pass()

        assert outcome.ok
        assert first.closed
        assert factory.launches == [False, False]

    async def test_session_dying_mid_pass_is_replaced(self, settings):
        factory = SessionFactory(DiesOnNavigate(), FakeBrowserSession.with_items(ITEMS))
        scheduler, _, _ = await make_scheduler(settings, factory)

        first = await scheduler.run_pass()
        second = await scheduler.run_pass()

        assert first.session_dead
        assert second.ok
        assert len(factory.launches) == 2

    async def test_auth_failure_relaunches_headful(self, settings):
        logged_out = FakeBrowserSession.with_items(ITEMS)
        logged_out.log_out()
        factory = SessionFactory(logged_out, FakeBrowserSession.with_items(ITEMS))
        scheduler, _, notifier = await make_scheduler(settings, factory)

        first = await scheduler.run_pass()
        second = await scheduler.run_pass()

        assert first.auth_related
        assert second.ok
        assert logged_out.closed
        assert factory.launches == [False, True]
        assert notifier.kinds() == [
            NotificationEvent.AUTH_FAILURE,
            NotificationEvent.SCAN_FAILED,
            NotificationEvent.SCAN_COMPLETE,
        ]

    async def test_launch_failure_is_a_failed_pass(self, settings):
        factory = SessionFactory(BrowserError("Could not launch browser"), FakeBrowserSession.with_items(ITEMS))
        scheduler, _, _ = await make_scheduler(settings, factory)

        first = await scheduler.run_pass()
        second = await scheduler.run_pass()

        assert first.session_dead
        assert "could not launch browser" in first.reason
        assert second.ok


class TestRun:
    async def test_runs_until_cancelled(self, settings):
        token = CancellationToken()
        clock = FakeClock()
        holder: dict[str, WatchScheduler] = {}

        async def sleep(seconds: float) -> None:
            await clock.sleep(seconds)
            if holder["scheduler"].pass_count >= 3:
                token.cancel("test")

        session = FakeBrowserSession.with_items(ITEMS)
        scheduler, _, notifier = await make_scheduler(settings, SessionFactory(session), sleep=sleep)
        holder["scheduler"] = scheduler

        await scheduler.run(token)

        assert scheduler.pass_count == 3
        assert session.closed
        assert notifier.kinds() == [NotificationEvent.SCAN_COMPLETE] * 3

    async def test_waits_interval_in_ticks(self, settings):
        token = CancellationToken()
        clock = FakeClock()
        holder: dict[str, WatchScheduler] = {}

        async def sleep(seconds: float) -> None:
            await clock.sleep(seconds)
            if holder["scheduler"].pass_count >= 2:
                token.cancel("test")

        scheduler, _, _ = await make_scheduler(
            settings, SessionFactory(FakeBrowserSession.with_items(ITEMS)), sleep=sleep, tick=1.0
        )
        holder["scheduler"] = scheduler

        await scheduler.run(token)

        assert clock.sleeps.count(1.0) == 60

    async def test_cancellation_interrupts_sleep(self, settings):
        token = CancellationToken()
        clock = FakeClock()
        ticks: list[float] = []

        async def sleep(seconds: float) -> None:
            await clock.sleep(seconds)
            if seconds == 1.0:
                ticks.append(seconds)
                if len(ticks) == 5:
                    token.cancel("SIGTERM")

        session = FakeBrowserSession.with_items(ITEMS)
        scheduler, _, _ = await make_scheduler(settings, SessionFactory(session), sleep=sleep, tick=1.0)

        await scheduler.run(token)

        assert scheduler.pass_count == 1
        assert len(ticks) == 5
        assert session.closed

    async def test_failed_passes_do_not_stop_the_loop(self, settings):
        token = CancellationToken()
        clock = FakeClock()
        holder: dict[str, WatchScheduler] = {}

        async def sleep(seconds: float) -> None:
            await clock.sleep(seconds)
            if holder["scheduler"].pass_count >= 2:
                token.cancel("test")

        session = FakeBrowserSession.with_items(ITEMS, navigate_error="net::ERR_TIMED_OUT")
        scheduler, _, notifier = await make_scheduler(settings, SessionFactory(session), sleep=sleep)
        holder["scheduler"] = scheduler

        await scheduler.run(token)

        assert scheduler.pass_count == 2
        assert notifier.kinds() == [NotificationEvent.SCAN_FAILED] * 2


class TestBackendFailures:
    """A misbehaving store never ends watch mode or fails a promoted pass."""

    async def test_locked_sqlite_mirror_does_not_stop_the_loop(self, settings, tmp_path):
        path = tmp_path / "mirror.db"
        primary = MemoryStore("primary")
        mirror = SQLiteStore(path, timeout=0.05)
        locker = sqlite3.connect(path, isolation_level=None)
        session = LocksDatabaseOnNavigate.with_items(ITEMS, navigate_error="net::ERR_TIMED_OUT")
        session.locker = locker

        token = CancellationToken()
        clock = FakeClock()
        holder: dict[str, WatchScheduler] = {}

        async def sleep(seconds: float) -> None:
            await clock.sleep(seconds)
            if holder["scheduler"].pass_count >= 2:
                token.cancel("test")

        scheduler, _, notifier = await make_scheduler(
            settings, SessionFactory(session), stores=[primary, mirror], sleep=sleep
        )
        holder["scheduler"] = scheduler
        try:
            await scheduler.run(token)
        finally:
            locker.rollback()
            locker.close()
            await mirror.close()

        assert scheduler.pass_count == 2
        assert isinstance(scheduler.last_outcome, PassFailed)
        assert notifier.kinds() == [NotificationEvent.SCAN_FAILED] * 2
        assert [run.status for run in await primary.list_runs()] == [RunStatus.FAILED] * 2

    async def test_secondary_cleanup_error_keeps_pass_ok(self, settings):
        secondary = FlakyStore("secondary", errors={"atomic_cleanup": sqlite3.OperationalError("database is locked")})
        factory = SessionFactory(FakeBrowserSession.with_items(ITEMS))
        scheduler, _, notifier = await make_scheduler(
            settings, factory, stores=[MemoryStore("primary"), secondary]
        )

        outcome = await scheduler.run_pass()

        assert isinstance(outcome, PassOk)
        assert scheduler.previous_ids == {"g-p-a1", "g-p-b2"}
        assert notifier.kinds() == [NotificationEvent.SCAN_COMPLETE]
        [run] = await secondary.list_runs()
        assert run.status == RunStatus.COMPLETED

    async def test_unexpected_error_becomes_failed_pass(self, settings):
        factory = SessionFactory(FakeBrowserSession.with_items(ITEMS))
        scheduler, _, notifier = await make_scheduler(settings, factory, progress=FailsToStart())

        outcome = await scheduler.run_pass()

        assert isinstance(outcome, PassFailed)
        assert outcome.error_type == "RuntimeError"
        assert scheduler.lease.owner is None
        assert notifier.kinds() == [NotificationEvent.SCAN_FAILED]
