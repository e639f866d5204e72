"""Local JSON file store - the default primary store.

The whole store is one JSON document. Every mutation is written to a
temporary file next to the target and moved over it with ``os.replace``,
so a crash never leaves a half-written file. If a mutation cannot be
persisted, the in-memory state is rolled back and the error is raised.

Example:
    >>> from scrollspine.storage.json_file import JsonFileStore
    >>> store = JsonFileStore("items.json")
    >>> store.name
    'json'
    >>> store.path.name
    'items.json'
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from scrollspine.core.exceptions import StorageError, StorageFlushError
from scrollspine.models.base import utc_now
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats
from scrollspine.storage.memory import MemoryStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a JSON document after every mutation.

    Args:
        path: Target file. Parent directories are created as needed.
        clock: Source of "now", injectable for tests.
        read_only: Refuse mutations and report an unreadable document
            instead of moving it aside.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        clock: Callable[[], datetime] = utc_now,
        read_only: bool = False,
    ) -> None:
        super().__init__(name="json", clock=clock)
        self.path = Path(path)
        self.read_only = read_only

    # --- Persistence ---

    def _document(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "last_updated_at": self._clock().isoformat(),
            "items": [item.to_dict() for item in self._items.values()],
            "runs": [run.to_dict() for run in self._runs.values()],
            "run_state": self._state.model_dump(mode="json"),
        }

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._document(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def _load(self, data: dict[str, Any]) -> None:
        if data.get("version") != FORMAT_VERSION:
            raise ValueError(f"unsupported format version {data.get('version')!r}")
        self._items = {row["id"]: ItemRecord.from_dict(row) for row in data.get("items", [])}
        self._runs = {row["id"]: Run.from_dict(row) for row in data.get("runs", [])}
        self._state = RunState.model_validate(data.get("run_state") or {})

    def _quarantine(self, reason: Exception) -> Path:
        stamp = self._clock().strftime("%Y%m%dT%H%M%S")
        aside = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        os.replace(self.path, aside)
        logger.warning(f"Could not read {self.path} ({reason}); moved it to {aside} and starting fresh")
        return aside

    @contextmanager
    def _transaction(self, action: str, pending: int = 0) -> Iterator[None]:
        """Apply an in-memory change and persist it, or roll back both."""
        if self.read_only:
            raise StorageError(f"{self.name}: {action} refused, {self.path} is open read-only")
        items, runs, state = dict(self._items), dict(self._runs), self._state
        try:
            yield
            self._save()
        except OSError as e:
            self._items, self._runs, self._state = items, runs, state
            if action == "upsert":
                raise StorageFlushError(self.name, str(e), pending=pending) from e
            raise StorageError(f"{self.name}: {action} failed: {e}") from e

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Load the existing document, if any.

        An unreadable document is moved aside, never overwritten. In
        read-only mode it is left in place and StorageError is raised.
        """
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    self._load(json.load(f))
            except (ValueError, KeyError, TypeError) as e:
                self._items, self._runs, self._state = {}, {}, RunState()
                if self.read_only:
                    raise StorageError(f"{self.name}: could not read {self.path}: {e}") from e
                self._quarantine(e)
            else:
                logger.info(f"Loaded {len(self._items)} existing items from {self.path}")
        self._initialized = True

    # --- Mutations ---

    async def upsert(self, rows: list[ItemRecord]) -> int:
        with self._transaction("upsert", pending=len(rows)):
            count = await super().upsert(rows)
        return count

    async def delete_where(self, predicate: Callable[[ItemRecord], bool]) -> int:
        with self._transaction("delete"):
            count = await super().delete_where(predicate)
        return count

    async def start_run(self, run_id: str | None = None) -> Run:
        with self._transaction("start run"):
            run = await super().start_run(run_id)
        return run

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        with self._transaction("complete run"):
            run = await super().mark_run_completed(run_id, stats)
        return run

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        with self._transaction("fail run"):
            run = await super().mark_run_failed(run_id, error)
        return run

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        with self._transaction("cleanup"):
            result = await super().atomic_cleanup(keep_count)
        return result
