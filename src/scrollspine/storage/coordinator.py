"""Run-scoped coordination of writes across durable stores.

The coordinator is the only writer. For each pass it:

1. starts a run in every store under one shared run id,
2. buffers every extracted record per store and flushes on the store's
   FlushPolicy,
3. on completion, performs a final flush per store and only then promotes
   the run and applies retention in that store,
4. on failure, flushes what it can and marks the run failed.

A failed flush keeps the buffer, so a later flush writes the same records.
A store whose final flush fails marks its run failed instead of completing
it, which keeps the run out of retention: nothing previously confirmed is
ever deleted because of a bad pass. Backend errors raised after a run
starts are logged and reported per store rather than propagated.

Example:
    >>> import asyncio
    >>> from scrollspine.models import ItemRecord, RunStats
    >>> from scrollspine.storage.coordinator import RunCoordinator
    >>> from scrollspine.storage.memory import MemoryStore
    >>> async def demo():
    ...     store = MemoryStore()
    ...     coordinator = RunCoordinator([store], keep_runs=3)
    ...     await coordinator.initialize()
    ...     await coordinator.start_run()
    ...     await coordinator.add(ItemRecord.observed("a", "Alpha"))
    ...     report = await coordinator.complete_run(RunStats(items_found=1, items_extracted=1))
    ...     return report.ok, await store.list_existing_ids()
    >>> asyncio.run(demo())
    (True, {'a'})
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from uuid import uuid4

from scrollspine.core.exceptions import StorageError, StoreUnavailableError
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, RunStats
from scrollspine.protocols.store import DurableStore
from scrollspine.storage.buffer import FlushPolicy, WriteBuffer

logger = logging.getLogger(__name__)


@dataclass
class _StoreSlot:
    """Per-store buffer and run bookkeeping."""

    store: DurableStore
    buffer: WriteBuffer
    run_id: str | None = None
    flush_failures: int = 0
    last_error: str | None = None


@dataclass
class CompletionReport:
    """Outcome of complete_run, per store.

    Attributes:
        completed: Stores whose run was flushed and promoted.
        failed: Stores whose run was marked failed, with the reason.
        cleanup: Retention results for stores that ran it successfully.
        primary: Name of the primary store.
    """

    primary: str
    completed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    cleanup: dict[str, CleanupResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True if the primary store completed the run."""
        return self.primary in self.completed


class RunCoordinator:
    """Coordinates one run at a time across a list of durable stores.

    The first store is the primary: startup reconciliation copies its
    records into the other stores, and pass success is judged by it.

    Args:
        stores: Stores to write to, primary first.
        keep_runs: Completed runs retained by cleanup.
        flush_policy: When buffered records are written.
        reconcile: Copy primary-only records into secondaries at startup.
        clock: Monotonic clock for the flush debounce.
    """

    def __init__(
        self,
        stores: Sequence[DurableStore],
        *,
        keep_runs: int = 3,
        flush_policy: FlushPolicy | None = None,
        reconcile: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not stores:
            raise ValueError("RunCoordinator needs at least one store")
        if keep_runs < 1:
            raise ValueError("keep_runs must be at least 1")
        self.keep_runs = keep_runs
        self.flush_policy = flush_policy or FlushPolicy()
        self._reconcile = reconcile
        self._slots = [_StoreSlot(store, WriteBuffer(self.flush_policy, clock=clock)) for store in stores]
        self._run_id: str | None = None

    @property
    def stores(self) -> list[DurableStore]:
        return [slot.store for slot in self._slots]

    @property
    def primary(self) -> DurableStore:
        return self._slots[0].store

    @property
    def current_run_id(self) -> str | None:
        return self._run_id

    def pending(self) -> dict[str, int]:
        """Buffered record counts per store."""
        return {slot.store.name: slot.buffer.pending for slot in self._slots}

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Initialize every store, then reconcile secondaries.

        Raises:
            StoreUnavailableError: A store could not be initialized.
        """
        for slot in self._slots:
            try:
                await slot.store.initialize()
            except Exception as e:
                raise StoreUnavailableError(slot.store.name, str(e)) from e
            logger.info(f"Storage backend '{slot.store.name}' ready")

        if self._reconcile and len(self._slots) > 1:
            await self.reconcile()

    async def reconcile(self) -> dict[str, int]:
        """Copy records present in the primary but missing from each secondary.

        Errors are logged; a secondary that cannot be reconciled is retried
        at the next startup.

        Returns:
            Records copied per secondary store.
        """
        copied: dict[str, int] = {}
        try:
            primary_items = await self.primary.get_items()
        except Exception as e:
            logger.warning(f"Reconciliation skipped: could not read {self.primary.name}: {e}")
            return copied

        for slot in self._slots[1:]:
            try:
                existing = await slot.store.list_existing_ids()
                missing = [item for item in primary_items if item.id not in existing]
                if missing:
                    await slot.store.upsert(missing)
                    logger.info(f"Reconciled {len(missing)} item(s) into {slot.store.name}")
                copied[slot.store.name] = len(missing)
            except Exception as e:
                logger.warning(f"Reconciliation of {slot.store.name} failed: {e}")
        return copied

    async def close(self) -> None:
        """Flush what is pending and close every store. Errors are logged."""
        for slot in self._slots:
            if slot.buffer.pending:
                await self._flush(slot)
            try:
                await slot.store.close()
            except Exception as e:
                logger.warning(f"Error closing {slot.store.name}: {e}")

    # --- Runs ---

    async def start_run(self) -> str:
        """Start a run in every store under one shared id.

        Raises:
            StorageError: A store could not start the run.
        """
        run_id = str(uuid4())
        self._run_id = run_id
        for slot in self._slots:
            slot.flush_failures = 0
            slot.last_error = None
            try:
                await slot.store.start_run(run_id)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"{slot.store.name}: could not start run {run_id}: {e}") from e
            slot.run_id = run_id
        logger.info(f"Started run {run_id}")
        return run_id

    async def add(self, record: ItemRecord) -> None:
        """Buffer a record for every store and flush whatever is due.

        The record is stamped with the current run id before buffering.
        """
        if self._run_id is not None:
            record = record.model_copy(
                update={
                    "first_run_id": record.first_run_id or self._run_id,
                    "last_confirmed_run_id": self._run_id,
                }
            )
        for slot in self._slots:
            slot.buffer.add(record)
        await self.flush_due()

    async def flush_due(self) -> None:
        for slot in self._slots:
            if slot.buffer.is_due():
                await self._flush(slot)

    async def flush_all(self) -> bool:
        """Flush every buffer now. Returns True if all succeeded."""
        results = [await self._flush(slot) for slot in self._slots]
        return all(results)

    async def _flush(self, slot: _StoreSlot) -> bool:
        rows = slot.buffer.snapshot()
        if not rows:
            return True
        try:
            await slot.store.upsert(rows)
        except Exception as e:
            slot.flush_failures += 1
            slot.last_error = str(e)
            logger.warning(f"Flush to {slot.store.name} failed; keeping {len(rows)} record(s) for retry: {e}")
            return False
        slot.buffer.mark_flushed(rows)
        logger.debug(f"Flushed {len(rows)} record(s) to {slot.store.name}")
        return True

    async def complete_run(self, stats: RunStats) -> CompletionReport:
        """Final flush, then promote and clean up each store whose flush succeeded."""
        report = CompletionReport(primary=self.primary.name)
        for slot in self._slots:
            if slot.run_id is None:
                continue
            name = slot.store.name

            if not await self._flush(slot):
                reason = f"final flush failed: {slot.last_error}"
                await self._mark_failed(slot, reason)
                report.failed[name] = reason
                continue

            try:
                await slot.store.mark_run_completed(slot.run_id, stats)
            except Exception as e:
                logger.error(f"Could not promote run {slot.run_id} in {name}: {e}")
                await self._mark_failed(slot, f"promotion failed: {e}")
                report.failed[name] = str(e)
                continue

            slot.run_id = None
            report.completed.append(name)

            try:
                result = await slot.store.atomic_cleanup(self.keep_runs)
            except Exception as e:
                logger.warning(f"Cleanup in {name} failed, will retry after the next run: {e}")
            else:
                report.cleanup[name] = result
                if not result.is_empty:
                    logger.info(
                        f"Cleaned up {result.runs_deleted} old run(s) "
                        f"({result.items_deleted} item(s)) in {name}"
                    )

        if report.failed:
            logger.warning(f"Run {self._run_id} failed in: {', '.join(sorted(report.failed))}")
        else:
            logger.info(f"Completed run {self._run_id} ({stats.items_extracted} items)")
        self._run_id = None
        return report

    async def fail_run(self, reason: str) -> None:
        """Best-effort flush, then mark the run failed in every store."""
        for slot in self._slots:
            if slot.run_id is None:
                continue
            await self._flush(slot)
            await self._mark_failed(slot, reason)
        self._run_id = None

    async def _mark_failed(self, slot: _StoreSlot, reason: str) -> None:
        run_id = slot.run_id
        slot.run_id = None
        if run_id is None:
            return
        try:
            await slot.store.mark_run_failed(run_id, reason)
        except Exception as e:
            logger.error(f"Could not mark run {run_id} failed in {slot.store.name}: {e}")
        else:
            logger.info(f"Marked run {run_id} failed in {slot.store.name}: {reason}")
