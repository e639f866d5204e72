"""Tests for scrollspine.storage.coordinator - run-scoped atomic writes."""

from __future__ import annotations

import sqlite3

import pytest

from scrollspine.core.exceptions import StorageError, StoreUnavailableError
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import RunStats, RunStatus
from scrollspine.storage.buffer import FlushPolicy
from scrollspine.storage.coordinator import RunCoordinator
from scrollspine.storage.memory import MemoryStore
from scrollspine.testing import FakeClock, FlakyStore


class BrokenStore(MemoryStore):
    async def initialize(self) -> None:
        raise OSError("connection refused")


def make_coordinator(*stores, clock: FakeClock | None = None, interval: float = 5.0, **kwargs) -> RunCoordinator:
    return RunCoordinator(
        list(stores),
        flush_policy=FlushPolicy(interval=interval, max_pending=100),
        clock=clock or FakeClock(),
        **kwargs,
    )


async def run_pass(coordinator: RunCoordinator, clock: FakeClock, item_ids: list[str]):
    """One coordinator run confirming item_ids."""
    await coordinator.start_run()
    for item_id in item_ids:
        await coordinator.add(ItemRecord.observed(item_id, item_id.upper(), at=clock.utc()))
    clock.advance(60)
    report = await coordinator.complete_run(RunStats(items_found=len(item_ids), items_extracted=len(item_ids)))
    clock.advance(3600)
    return report


class TestCoordinatorLifecycle:
    async def test_requires_a_store(self):
        with pytest.raises(ValueError):
            RunCoordinator([])

    async def test_store_initialization_failure_is_fatal(self):
        coordinator = make_coordinator(MemoryStore(), BrokenStore("broken"))

        with pytest.raises(StoreUnavailableError, match="broken"):
            await coordinator.initialize()

    async def test_reconcile_copies_primary_items_into_secondaries(self):
        primary, secondary = MemoryStore("primary"), MemoryStore("secondary")
        await primary.upsert([ItemRecord.observed("a", "Alpha"), ItemRecord.observed("b", "Beta")])
        await secondary.upsert([ItemRecord.observed("a", "Alpha")])

        await make_coordinator(primary, secondary).initialize()

        assert await secondary.list_existing_ids() == {"a", "b"}

    async def test_close_flushes_pending_records(self):
        store = MemoryStore()
        coordinator = make_coordinator(store, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))

        await coordinator.close()

        assert await store.list_existing_ids() == {"a"}


class TestCoordinatorRuns:
    async def test_successful_run_is_promoted(self):
        clock = FakeClock()
        store = MemoryStore(clock=clock.utc)
        coordinator = make_coordinator(store, clock=clock)
        await coordinator.initialize()

        report = await run_pass(coordinator, clock, ["a", "b"])

        [run] = await store.list_runs()
        assert report.ok
        assert run.status == RunStatus.COMPLETED
        assert (await store.get_run_state()).current_run_id == run.id

    async def test_records_are_stamped_with_the_run(self):
        store = MemoryStore()
        coordinator = make_coordinator(store)
        await coordinator.initialize()
        run_id = await coordinator.start_run()

        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        [item] = await store.get_items()
        assert item.first_run_id == run_id
        assert item.last_confirmed_run_id == run_id

    async def test_all_stores_share_one_run_id(self):
        first, second = MemoryStore("first"), MemoryStore("second")
        coordinator = make_coordinator(first, second)
        await coordinator.initialize()

        run_id = await coordinator.start_run()

        assert [r.id for r in await first.list_runs()] == [run_id]
        assert [r.id for r in await second.list_runs()] == [run_id]

    async def test_same_id_twice_in_a_run_is_stored_once(self):
        store = MemoryStore()
        coordinator = make_coordinator(store, interval=0)
        await coordinator.initialize()
        await coordinator.start_run()

        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        await coordinator.complete_run(RunStats(items_found=2, items_extracted=1))

        assert len(await store.get_items()) == 1

    async def test_fail_run_marks_every_store_failed(self):
        first, second = MemoryStore("first"), MemoryStore("second")
        coordinator = make_coordinator(first, second)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))

        await coordinator.fail_run("AuthRecoveryError: no login")

        for store in (first, second):
            [run] = await store.list_runs()
            assert run.status == RunStatus.FAILED
            assert await store.list_existing_ids() == {"a"}
        assert coordinator.current_run_id is None


class TestCoordinatorFlushing:
    async def test_writes_are_debounced(self):
        clock = FakeClock()
        store = MemoryStore()
        coordinator = make_coordinator(store, clock=clock, interval=5.0)
        await coordinator.initialize()
        await coordinator.start_run()

        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        clock.advance(1)
        await coordinator.add(ItemRecord.observed("b", "Beta"))
        assert await store.list_existing_ids() == set()

        clock.advance(5)
        await coordinator.add(ItemRecord.observed("c", "Gamma"))
        assert await store.list_existing_ids() == {"a", "b", "c"}

    async def test_failed_flush_keeps_records_for_retry(self):
        store = FlakyStore(failures=1)
        coordinator = make_coordinator(store, interval=0)
        await coordinator.initialize()
        await coordinator.start_run()

        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        assert coordinator.pending() == {"flaky": 1}

        await coordinator.add(ItemRecord.observed("b", "Beta"))
        assert coordinator.pending() == {"flaky": 0}
        assert await store.list_existing_ids() == {"a", "b"}


class TestCoordinatorAtomicity:
    """A failed pass never deletes previously confirmed records."""

    async def test_failed_final_flush_marks_run_failed(self):
        store = FlakyStore()
        coordinator = make_coordinator(store, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        store.failing = True

        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        [run] = await store.list_runs()
        assert not report.ok
        assert "flaky" in report.failed
        assert run.status == RunStatus.FAILED
        assert (await store.get_run_state()).current_run_id is None

    async def test_secondary_failure_does_not_fail_primary(self):
        primary, secondary = MemoryStore("primary"), FlakyStore("secondary")
        coordinator = make_coordinator(primary, secondary, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        secondary.failing = True

        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        assert report.ok
        assert report.completed == ["primary"]
        assert list(report.failed) == ["secondary"]

    async def test_failed_run_deletes_nothing(self):
        clock = FakeClock()
        store = FlakyStore(clock=clock.utc)
        coordinator = make_coordinator(store, clock=clock, keep_runs=3)
        await coordinator.initialize()
        await run_pass(coordinator, clock, ["a", "b", "c"])
        for _ in range(3):
            await run_pass(coordinator, clock, ["a", "b", "c"])
        before = await store.get_items()

        store.failing = True
        report = await run_pass(coordinator, clock, ["a"])

        assert not report.ok
        assert "flaky" not in report.cleanup
        assert await store.get_items() == before

    async def test_retention_keeps_three_completed_runs(self):
        clock = FakeClock()
        store = MemoryStore(clock=clock.utc)
        coordinator = make_coordinator(store, clock=clock, keep_runs=3)
        await coordinator.initialize()

        await run_pass(coordinator, clock, ["a", "gone"])
        for _ in range(3):
            report = await run_pass(coordinator, clock, ["a"])

        runs = await store.list_runs()
        assert len(runs) == 3
        assert all(run.status == RunStatus.COMPLETED for run in runs)
        assert await store.list_existing_ids() == {"a"}
        assert report.cleanup["memory"].items_deleted == 1


class TestCoordinatorUnexpectedBackendErrors:
    """Errors outside the storage family are contained per store."""

    async def test_secondary_cleanup_error_keeps_run_completed(self):
        primary = MemoryStore("primary")
        secondary = FlakyStore("secondary", errors={"atomic_cleanup": sqlite3.OperationalError("database is locked")})
        coordinator = make_coordinator(primary, secondary, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))

        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        assert report.ok
        assert report.completed == ["primary", "secondary"]
        assert report.failed == {}
        assert "secondary" not in report.cleanup
        for store in (primary, secondary):
            [run] = await store.list_runs()
            assert run.status == RunStatus.COMPLETED

    async def test_primary_cleanup_error_keeps_run_completed(self):
        store = FlakyStore("primary", errors={"atomic_cleanup": RuntimeError("disk gone")})
        coordinator = make_coordinator(store, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))

        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        assert report.ok
        assert (await store.get_run_state()).current_run_id is not None

    async def test_unexpected_flush_error_keeps_records_pending(self):
        primary = MemoryStore("primary")
        secondary = FlakyStore("secondary", errors={"upsert": RuntimeError("socket closed")})
        coordinator = make_coordinator(primary, secondary, interval=0)
        await coordinator.initialize()
        await coordinator.start_run()

        await coordinator.add(ItemRecord.observed("a", "Alpha"))
        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        assert report.ok
        assert "secondary" in report.failed
        assert coordinator.pending() == {"primary": 0, "secondary": 1}

    async def test_unexpected_promotion_error_fails_only_that_store(self):
        primary = MemoryStore("primary")
        secondary = FlakyStore("secondary", errors={"mark_run_completed": RuntimeError("constraint")})
        coordinator = make_coordinator(primary, secondary, interval=60)
        await coordinator.initialize()
        await coordinator.start_run()
        await coordinator.add(ItemRecord.observed("a", "Alpha"))

        report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))

        assert report.ok
        assert report.completed == ["primary"]
        [run] = await secondary.list_runs()
        assert run.status == RunStatus.FAILED

    async def test_fail_run_survives_mark_failed_error(self):
        first = MemoryStore("first")
        second = FlakyStore("second", errors={"mark_run_failed": sqlite3.OperationalError("database is locked")})
        coordinator = make_coordinator(first, second)
        await coordinator.initialize()
        await coordinator.start_run()

        await coordinator.fail_run("NavigationError: net::ERR_TIMED_OUT")

        [run] = await first.list_runs()
        assert run.status == RunStatus.FAILED
        assert coordinator.current_run_id is None

    async def test_unexpected_start_error_is_a_storage_error(self):
        coordinator = make_coordinator(FlakyStore(errors={"start_run": sqlite3.OperationalError("disk I/O error")}))
        await coordinator.initialize()

        with pytest.raises(StorageError, match="disk I/O error"):
            await coordinator.start_run()
