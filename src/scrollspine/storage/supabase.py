"""Supabase store - PostgREST over httpx.

Mirrors items and runs into a hosted Postgres database. Promotion and
retention run server-side as SQL functions (see ``migrations/supabase.sql``)
so each is a single transaction.

Example:
    >>> from scrollspine.storage.supabase import SupabaseStore
    >>> store = SupabaseStore("https://example.supabase.co", "anon-key")
    >>> store.name
    'supabase'
    >>> store.rest_url
    'https://example.supabase.co/rest/v1'
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from scrollspine.core.exceptions import StorageError, StorageFlushError
from scrollspine.models.base import utc_now
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats, RunStatus

logger = logging.getLogger(__name__)


class SupabaseStore:
    """DurableStore backed by Supabase's REST interface.

    Args:
        url: Project URL.
        key: API key, sent as both ``apikey`` and bearer token.
        items_table: Name of the items table.
        runs_table: Name of the runs table.
        timeout: Request timeout in seconds.
        client: Pre-built client whose base_url is the REST root (tests pass
            one with a MockTransport).
    """

    def __init__(
        self,
        url: str,
        key: str,
        *,
        items_table: str = "items",
        runs_table: str = "runs",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = "supabase"
        self.rest_url = url.rstrip("/") + "/rest/v1"
        self._key = key
        self._items_table = items_table
        self._runs_table = runs_table
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._known_ids: set[str] = set()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.rest_url,
                headers=self.headers,
                timeout=httpx.Timeout(self._timeout),
            )
            self._owns_client = True
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send a request and return the decoded body (None when empty).

        Raises:
            httpx.HTTPError: Transport failure or error status.
            StorageError: The body was not valid JSON.
        """
        client = self._ensure_client()
        headers = {"Prefer": prefer} if prefer else None
        response = await client.request(method, path, params=params, json=json, headers=headers)
        response.raise_for_status()
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StorageError(f"{self.name}: malformed response from {path}: {e}") from e

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Verify connectivity and load known ids."""
        try:
            rows = await self._request("GET", f"/{self._items_table}", params={"select": "id"})
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not load existing items: {e}") from e
        self._known_ids = {row["id"] for row in rows or []}
        logger.info(f"Supabase: Loaded {len(self._known_ids)} existing items")

    async def close(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # --- Row mapping ---

    @staticmethod
    def _item_row(item: ItemRecord, known: bool) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": item.id,
            "label": item.label,
            "last_confirmed_at": item.last_confirmed_at.isoformat(),
            "last_confirmed_run_id": item.last_confirmed_run_id,
        }
        if not known:
            row["first_observed_at"] = item.first_observed_at.isoformat()
            row["first_run_id"] = item.first_run_id
        return row

    @staticmethod
    def _row_to_item(row: dict[str, Any]) -> ItemRecord:
        return ItemRecord(
            id=row["id"],
            label=row["label"],
            first_observed_at=datetime.fromisoformat(row["first_observed_at"]),
            last_confirmed_at=datetime.fromisoformat(row["last_confirmed_at"]),
            first_run_id=row.get("first_run_id"),
            last_confirmed_run_id=row.get("last_confirmed_run_id"),
        )

    @staticmethod
    def _row_to_run(row: dict[str, Any]) -> Run:
        completed_at = row.get("completed_at")
        return Run(
            id=row["id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            status=RunStatus(row["status"]),
            items_found=row.get("items_found") or 0,
            items_extracted=row.get("items_extracted") or 0,
            error=row.get("error"),
        )

    # --- Items ---

    async def list_existing_ids(self) -> set[str]:
        try:
            rows = await self._request("GET", f"/{self._items_table}", params={"select": "id"})
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not list items: {e}") from e
        return {row["id"] for row in rows or []}

    async def get_items(self) -> list[ItemRecord]:
        try:
            rows = await self._request(
                "GET",
                f"/{self._items_table}",
                params={"select": "*", "order": "first_observed_at.asc"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not read items: {e}") from e
        return [self._row_to_item(row) for row in rows or []]

    async def upsert(self, rows: list[ItemRecord]) -> int:
        """Upsert with merge-duplicates.

        Rows for ids already stored omit the first-observed columns so the
        server keeps its values. PostgREST requires uniform keys per batch,
        so new and known rows go in separate requests.
        """
        if not rows:
            return 0
        new_rows = [self._item_row(r, known=False) for r in rows if r.id not in self._known_ids]
        known_rows = [self._item_row(r, known=True) for r in rows if r.id in self._known_ids]

        try:
            for batch in (new_rows, known_rows):
                if batch:
                    await self._request(
                        "POST",
                        f"/{self._items_table}",
                        params={"on_conflict": "id"},
                        json=batch,
                        prefer="resolution=merge-duplicates,return=minimal",
                    )
        except httpx.HTTPError as e:
            raise StorageFlushError(self.name, str(e), pending=len(rows)) from e

        self._known_ids.update(r.id for r in rows)
        logger.debug(f"Supabase: Synced {len(rows)} items")
        return len(rows)

    async def delete_where(self, predicate: Callable[[ItemRecord], bool]) -> int:
        doomed = [item.id for item in await self.get_items() if predicate(item)]
        if not doomed:
            return 0
        try:
            await self._request(
                "DELETE",
                f"/{self._items_table}",
                params={"id": f"in.({','.join(doomed)})"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not delete items: {e}") from e
        self._known_ids.difference_update(doomed)
        return len(doomed)

    # --- Runs ---

    async def start_run(self, run_id: str | None = None) -> Run:
        run = Run(id=run_id, started_at=self._clock()) if run_id else Run(started_at=self._clock())
        try:
            await self._request(
                "POST",
                f"/{self._runs_table}",
                json={"id": run.id, "started_at": run.started_at.isoformat(), "status": run.status.value},
                prefer="return=minimal",
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: failed to start run: {e}") from e
        logger.info(f"Supabase: Started run {run.id}")
        return run

    async def _get_run(self, run_id: str) -> Run:
        rows = await self._request(
            "GET", f"/{self._runs_table}", params={"select": "*", "id": f"eq.{run_id}"}
        )
        if not rows:
            raise StorageError(f"{self.name}: unknown run {run_id}")
        return self._row_to_run(rows[0])

    async def mark_run_completed(self, run_id: str, stats: RunStats) -> Run:
        """Record the counts, then promote the run server-side."""
        try:
            await self._request(
                "PATCH",
                f"/{self._runs_table}",
                params={"id": f"eq.{run_id}"},
                json={"items_found": stats.items_found, "items_extracted": stats.items_extracted},
                prefer="return=minimal",
            )
            await self._request("POST", "/rpc/promote_run_to_current", json={"target_run_id": run_id})
            run = await self._get_run(run_id)
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: failed to complete run {run_id}: {e}") from e
        logger.info(f"Supabase: Completed run {run_id} ({stats.items_extracted} items)")
        return run

    async def mark_run_failed(self, run_id: str, error: str) -> Run:
        now = self._clock()
        try:
            await self._request(
                "PATCH",
                f"/{self._runs_table}",
                params={"id": f"eq.{run_id}"},
                json={"status": RunStatus.FAILED.value, "completed_at": now.isoformat(), "error": error},
                prefer="return=minimal",
            )
            run = await self._get_run(run_id)
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: failed to mark run {run_id} failed: {e}") from e
        logger.info(f"Supabase: Marked run {run_id} as failed")
        return run

    async def list_runs(self) -> list[Run]:
        try:
            rows = await self._request(
                "GET", f"/{self._runs_table}", params={"select": "*", "order": "started_at.desc"}
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not list runs: {e}") from e
        return [self._row_to_run(row) for row in rows or []]

    async def get_run_state(self) -> RunState:
        try:
            rows = await self._request("GET", "/run_state", params={"select": "*", "id": "eq.1"})
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: could not read run state: {e}") from e
        if not rows:
            return RunState()
        row = rows[0]
        updated_at = row.get("updated_at")
        return RunState(
            current_run_id=row.get("current_run_id"),
            last_successful_run_id=row.get("last_successful_run_id"),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    async def atomic_cleanup(self, keep_count: int) -> CleanupResult:
        """Run the server-side retention function in one transaction."""
        try:
            rows = await self._request("POST", "/rpc/safe_cleanup_old_runs", json={"keep_count": keep_count})
        except httpx.HTTPError as e:
            raise StorageError(f"{self.name}: cleanup failed: {e}") from e
        if not rows:
            return CleanupResult()
        row = rows[0] if isinstance(rows, list) else rows
        result = CleanupResult(runs_deleted=row.get("runs_deleted", 0), items_deleted=row.get("items_deleted", 0))
        if not result.is_empty:
            # A deleted id must be re-sent with its first-observed columns.
            self._known_ids = await self.list_existing_ids()
        return result
