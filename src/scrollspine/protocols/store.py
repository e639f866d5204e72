"""Durable store protocol.

Defines the interface shared by every backend that persists items and runs.

Example:
    >>> from scrollspine.protocols.store import DurableStore
    >>> hasattr(DurableStore, "atomic_cleanup")
    True
    >>> hasattr(DurableStore, "mark_run_completed")
    True
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scrollspine.models import CleanupResult, ItemRecord, Run, RunState, RunStats


@runtime_checkable
class DurableStore(Protocol):
    """Persistent item and run storage.

    ``upsert`` merges by id following ItemRecord.merged_with, so storing the
    same observation twice leaves one record. ``atomic_cleanup`` must either
    apply completely or not at all.

    See Also:
        scrollspine.storage.memory.MemoryStore: In-memory implementation
    """

    name: str

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Open connections and create schema. Raises on an unusable backend."""
        ...

    async def close(self) -> None:
        ...

    # --- Items ---

    async def list_existing_ids(self) -> set[str]:
        ...

    async def get_items(self) -> list[ItemRecord]:
        ...

    async def upsert(self, rows: list[ItemRecord]) -> int:
        """Merge rows into the store. Raises StorageFlushError on failure."""
        ...

    async def delete_where(self, predicate: Callable[[ItemRecord], bool]) -> int:
        """Delete items matching predicate. Returns how many were removed."""
        ...

    # --- Runs ---

    async def start_run(self, run_id: str | None = None) -> Run:
        ...

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        """Mark the run completed and promote it to current."""
        ...

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        ...

    async def list_runs(self) -> list[Run]:
        """All runs, newest first."""
        ...

    async def get_run_state(self) -> RunState:
        ...

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        """Apply retention, keeping the newest keep_count completed runs."""
        ...
