"""In-memory durable store for testing.

Provides a complete in-memory implementation of DurableStore, useful for
tests, development and dry runs.

Example:
    >>> from scrollspine.storage.memory import MemoryStore
    >>> store = MemoryStore()
    >>> hasattr(store, "atomic_cleanup")
    True
    >>> store.name
    'memory'

Note:
    All methods are async. Use within async context or with asyncio.run().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from scrollspine.core.exceptions import StorageError
from scrollspine.models.base import utc_now
from scrollspine.models.item import ItemRecord, merge_into
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats
from scrollspine.storage.retention import plan_retention

logger = logging.getLogger(__name__)


class MemoryStore:
    """In-memory store using dictionaries.

    Data is lost when the process exits.

    Example:
        >>> from scrollspine.storage.memory import MemoryStore
        >>> s = MemoryStore()
        >>> s._initialized
        False
    """

    def __init__(self, name: str = "memory", *, clock: Callable[[], datetime] = utc_now) -> None:
        self.name = name
        self._clock = clock
        self._items: dict[str, ItemRecord] = {}
        self._runs: dict[str, Run] = {}
        self._state = RunState()
        self._initialized = False

    async def initialize(self) -> None:
        """No-op for memory storage."""
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    # --- Items ---

    async def list_existing_ids(self) -> set[str]:
        return set(self._items)

    async def get_items(self) -> list[ItemRecord]:
        return sorted(self._items.values(), key=lambda item: item.first_observed_at)

    async def upsert(self, rows: list[ItemRecord]) -> int:
        for row in rows:
            merge_into(self._items, row)
        return len(rows)

    async def delete_where(self, predicate: Callable[[ItemRecord], bool]) -> int:
        doomed = [item_id for item_id, item in self._items.items() if predicate(item)]
        for item_id in doomed:
            del self._items[item_id]
        return len(doomed)

    # --- Runs ---

    async def start_run(self, run_id: str | None = None) -> Run:
        run = Run(id=run_id, started_at=self._clock()) if run_id else Run(started_at=self._clock())
        self._runs[run.id] = run
        return run

    def _get_run(self, run_id: str) -> Run:
        try:
            return self._runs[run_id]
        except KeyError:
            raise StorageError(f"{self.name}: unknown run {run_id}") from None

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        now = self._clock()
        run = self._get_run(run_id).complete(stats, at=now)
        self._runs[run_id] = run
        self._state = self._state.promoted(run_id, at=now)
        return run

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        run = self._get_run(run_id).fail(error, at=self._clock())
        self._runs[run_id] = run
        return run

    async def list_runs(self) -> list[Run]:
        return sorted(self._runs.values(), key=lambda run: run.started_at, reverse=True)

    async def get_run_state(self) -> RunState:
        return self._state

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        plan = plan_retention(self._runs.values(), self._items.values(), keep_count, now=self._clock())
        for item_id in plan.item_ids:
            del self._items[item_id]
        for run_id in plan.run_ids:
            del self._runs[run_id]
        return CleanupResult(runs_deleted=len(plan.run_ids), items_deleted=len(plan.item_ids))
