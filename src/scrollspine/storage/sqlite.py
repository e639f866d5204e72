"""SQLite store - zero-config persistent storage.

Example:
    >>> from scrollspine.storage.sqlite import SQLiteStore
    >>>
    >>> # Just pass a path - schema auto-creates!
    >>> store = SQLiteStore("items.db")
    >>> store.name
    'sqlite'
    >>>
    >>> # Or use in-memory for testing
    >>> store = SQLiteStore(":memory:")
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from scrollspine.core.exceptions import StorageError, StorageFlushError
from scrollspine.models.base import utc_now
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats, RunStatus
from scrollspine.storage.retention import plan_retention

logger = logging.getLogger(__name__)


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """SQLite store with auto-schema creation.

    Each mutation runs in one transaction; retention deletes items and runs
    together or not at all.

    Args:
        path: Database file path, or ":memory:" for in-memory.
        timeout: Lock timeout in seconds (default 30).
        clock: Source of "now", injectable for tests.
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str | Path = ":memory:",
        *,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = "sqlite"
        self._path = str(path)
        self._timeout = timeout
        self._clock = clock
        self._conn: sqlite3.Connection | None = None

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor with automatic commit/rollback.

        Raises:
            StorageError: The database raised; the transaction was rolled back.
        """
        if not self._conn:
            raise StorageError("Store not initialized. Call initialize() first.")
        cursor = self._conn.cursor()
        try:
            yield cursor
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StorageError(f"{self.name}: {e}") from e
        except Exception:
            self._conn.rollback()
            raise
        finally:
            cursor.close()

    async def initialize(self) -> None:
        """Open the database and auto-create schema. Idempotent."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, timeout=self._timeout)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self) -> None:
        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    id TEXT PRIMARY KEY,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    status TEXT NOT NULL CHECK (status IN ('active', 'completed', 'failed')),
                    items_found INTEGER NOT NULL DEFAULT 0,
                    items_extracted INTEGER NOT NULL DEFAULT 0,
                    error TEXT
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    id TEXT PRIMARY KEY,
                    label TEXT NOT NULL,
                    first_observed_at TEXT NOT NULL,
                    last_confirmed_at TEXT NOT NULL,
                    first_run_id TEXT,
                    last_confirmed_run_id TEXT
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS run_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    current_run_id TEXT,
                    last_successful_run_id TEXT,
                    updated_at TEXT
                )
            """)
            cursor.execute("INSERT OR IGNORE INTO run_state (id) VALUES (1)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_items_last_confirmed_run ON items(last_confirmed_run_id)"
            )
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status)")

    async def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # --- Row mapping ---

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> ItemRecord:
        return ItemRecord(
            id=row["id"],
            label=row["label"],
            first_observed_at=datetime.fromisoformat(row["first_observed_at"]),
            last_confirmed_at=datetime.fromisoformat(row["last_confirmed_at"]),
            first_run_id=row["first_run_id"],
            last_confirmed_run_id=row["last_confirmed_run_id"],
        )

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> Run:
        return Run(
            id=row["id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=_dt(row["completed_at"]),
            status=RunStatus(row["status"]),
            items_found=row["items_found"],
            items_extracted=row["items_extracted"],
            error=row["error"],
        )

    def _fetch_items(self) -> dict[str, ItemRecord]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM items")
            return {row["id"]: self._row_to_item(row) for row in cursor.fetchall()}

    def _fetch_run(self, cursor: sqlite3.Cursor, run_id: str) -> Run:
        cursor.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
        row = cursor.fetchone()
        if row is None:
            raise StorageError(f"{self.name}: unknown run {run_id}")
        return self._row_to_run(row)

    # --- Items ---

    async def list_existing_ids(self) -> set[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM items")
            return {row["id"] for row in cursor.fetchall()}

    async def get_items(self) -> list[ItemRecord]:
        return sorted(self._fetch_items().values(), key=lambda item: item.first_observed_at)

    async def upsert(self, rows: list[ItemRecord]) -> int:
        """Merge rows inside one transaction."""
        try:
            with self._cursor() as cursor:
                for row in rows:
                    cursor.execute("SELECT * FROM items WHERE id = ?", (row.id,))
                    existing = cursor.fetchone()
                    merged = row if existing is None else self._row_to_item(existing).merged_with(row)
                    cursor.execute(
                        """
                        INSERT INTO items (
                            id, label, first_observed_at, last_confirmed_at,
                            first_run_id, last_confirmed_run_id
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            label = excluded.label,
                            last_confirmed_at = excluded.last_confirmed_at,
                            first_run_id = COALESCE(items.first_run_id, excluded.first_run_id),
                            last_confirmed_run_id = excluded.last_confirmed_run_id
                        """,
                        (
                            merged.id,
                            merged.label,
                            merged.first_observed_at.isoformat(),
                            merged.last_confirmed_at.isoformat(),
                            merged.first_run_id,
                            merged.last_confirmed_run_id,
                        ),
                    )
        except StorageError as e:
            raise StorageFlushError(self.name, str(e.__cause__ or e), pending=len(rows)) from e
        return len(rows)

    async def delete_where(self, predicate: Callable[[ItemRecord], bool]) -> int:
        doomed = [item.id for item in self._fetch_items().values() if predicate(item)]
        with self._cursor() as cursor:
            cursor.executemany("DELETE FROM items WHERE id = ?", [(item_id,) for item_id in doomed])
        return len(doomed)

    # --- Runs ---

    async def start_run(self, run_id: str | None = None) -> Run:
        run = Run(id=run_id, started_at=self._clock()) if run_id else Run(started_at=self._clock())
        with self._cursor() as cursor:
            cursor.execute(
                "INSERT INTO runs (id, started_at, status) VALUES (?, ?, ?)",
                (run.id, run.started_at.isoformat(), run.status.value),
            )
        return run

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        """Complete the run and move the current-run pointer in one transaction."""
        now = self._clock()
        with self._cursor() as cursor:
            run = self._fetch_run(cursor, run_id).complete(stats, at=now)
            cursor.execute(
                """
                UPDATE runs
                SET status = ?, completed_at = ?, items_found = ?, items_extracted = ?, error = NULL
                WHERE id = ?
                """,
                (run.status.value, now.isoformat(), run.items_found, run.items_extracted, run_id),
            )
            cursor.execute(
                """
                UPDATE run_state
                SET current_run_id = ?, last_successful_run_id = ?, updated_at = ?
                WHERE id = 1
                """,
                (run_id, run_id, now.isoformat()),
            )
        return run

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        now = self._clock()
        with self._cursor() as cursor:
            run = self._fetch_run(cursor, run_id).fail(error, at=now)
            cursor.execute(
                "UPDATE runs SET status = ?, completed_at = ?, error = ? WHERE id = ?",
                (run.status.value, now.isoformat(), error, run_id),
            )
        return run

    async def list_runs(self) -> list[Run]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM runs ORDER BY started_at DESC")
            return [self._row_to_run(row) for row in cursor.fetchall()]

    async def get_run_state(self) -> RunState:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM run_state WHERE id = 1")
            row = cursor.fetchone()
        if row is None:
            return RunState()
        return RunState(
            current_run_id=row["current_run_id"],
            last_successful_run_id=row["last_successful_run_id"],
            updated_at=_dt(row["updated_at"]),
        )

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        """Apply retention in a single transaction."""
        runs = await self.list_runs()
        plan = plan_retention(runs, self._fetch_items().values(), keep_count, now=self._clock())
        if plan.is_empty:
            return CleanupResult()

        with self._cursor() as cursor:
            cursor.executemany("DELETE FROM items WHERE id = ?", [(i,) for i in plan.item_ids])
            cursor.executemany("DELETE FROM runs WHERE id = ?", [(r,) for r in plan.run_ids])
        return CleanupResult(runs_deleted=len(plan.run_ids), items_deleted=len(plan.item_ids))
