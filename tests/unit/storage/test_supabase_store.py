"""Tests for scrollspine.storage.supabase - PostgREST store over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from scrollspine.core.exceptions import StorageError, StorageFlushError
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import RunStats, RunStatus
from scrollspine.storage.supabase import SupabaseStore
from scrollspine.testing import FakeClock

REST_URL = "https://example.supabase.co/rest/v1"


class FakePostgrest:
    """Just enough of PostgREST for the store: tables, RPCs and failures."""

    def __init__(self) -> None:
        self.items: dict[str, dict] = {}
        self.runs: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_paths: set[str] = set()
        self.garbled_paths: set[str] = set()
        self.cleanup_result = {"runs_deleted": 0, "items_deleted": 0}
        self.state = {"id": 1, "current_run_id": None, "last_successful_run_id": None, "updated_at": None}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/rest/v1")
        if path in self.fail_paths:
            return httpx.Response(503, json={"message": "service unavailable"})
        if path in self.garbled_paths:
            return httpx.Response(200, content=b"<html>gateway timeout</html>")

        body = json.loads(request.content) if request.content else None
        params = request.url.params

        if path == "/items":
            if request.method == "GET":
                return httpx.Response(200, json=list(self.items.values()))
            if request.method == "POST":
                for row in body:
                    self.items.setdefault(row["id"], {}).update(row)
                return httpx.Response(201)
        if path == "/runs":
            if request.method == "POST":
                self.runs[body["id"]] = {**body, "items_found": 0, "items_extracted": 0, "completed_at": None}
                return httpx.Response(201)
            run_id = params.get("id", "").removeprefix("eq.")
            if request.method == "PATCH":
                self.runs[run_id].update(body)
                return httpx.Response(204)
            if request.method == "GET":
                rows = [self.runs[run_id]] if run_id in self.runs else []
                if not run_id:
                    rows = sorted(self.runs.values(), key=lambda r: r["started_at"], reverse=True)
                return httpx.Response(200, json=rows)
        if path == "/rpc/promote_run_to_current":
            run = self.runs[body["target_run_id"]]
            run.update(status="completed", completed_at=run["started_at"])
            self.state.update(current_run_id=run["id"], last_successful_run_id=run["id"])
            return httpx.Response(204)
        if path == "/rpc/safe_cleanup_old_runs":
            return httpx.Response(200, json=[self.cleanup_result])
        if path == "/run_state":
            return httpx.Response(200, json=[self.state])
        return httpx.Response(404, json={"message": f"no route {request.method} {path}"})

    def last(self, method: str, path: str) -> httpx.Request:
        matches = [r for r in self.requests if r.method == method and r.url.path == "/rest/v1" + path]
        return matches[-1]


@pytest.fixture
def server() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture
async def store(server):
    client = httpx.AsyncClient(base_url=REST_URL, transport=httpx.MockTransport(server))
    s = SupabaseStore("https://example.supabase.co", "key", client=client, clock=FakeClock().utc)
    yield s
    await s.close()
    await client.aclose()


class TestSupabaseItems:
    async def test_initialize_loads_known_ids(self, server, store):
        server.items["a"] = {"id": "a"}

        await store.initialize()

        assert await store.list_existing_ids() == {"a"}

    async def test_initialize_failure_raises_storage_error(self, server, store):
        server.fail_paths.add("/items")

        with pytest.raises(StorageError):
            await store.initialize()

    async def test_upsert_merges_on_id(self, server, store):
        await store.initialize()

        await store.upsert([ItemRecord.observed("a", "Alpha", run_id="r1")])

        request = server.last("POST", "/items")
        assert request.url.params["on_conflict"] == "id"
        assert "resolution=merge-duplicates" in request.headers["Prefer"]
        assert server.items["a"]["label"] == "Alpha"

    async def test_new_rows_carry_first_observation(self, server, store):
        await store.initialize()

        await store.upsert([ItemRecord.observed("a", "Alpha", run_id="r1")])

        [row] = json.loads(server.last("POST", "/items").content)
        assert row["first_run_id"] == "r1"
        assert "first_observed_at" in row

    async def test_known_rows_leave_first_observation_to_the_server(self, server, store):
        server.items["a"] = {"id": "a", "first_run_id": "r0"}
        await store.initialize()

        await store.upsert([ItemRecord.observed("a", "Alpha", run_id="r2")])

        [row] = json.loads(server.last("POST", "/items").content)
        assert "first_observed_at" not in row
        assert "first_run_id" not in row
        assert row["last_confirmed_run_id"] == "r2"
        assert server.items["a"]["first_run_id"] == "r0"

    async def test_failed_upsert_raises_flush_error_and_keeps_rows_new(self, server, store):
        await store.initialize()
        server.fail_paths.add("/items")

        with pytest.raises(StorageFlushError) as exc_info:
            await store.upsert([ItemRecord.observed("a", "Alpha", run_id="r1")])
        assert exc_info.value.pending == 1

        server.fail_paths.clear()
        await store.upsert([ItemRecord.observed("a", "Alpha", run_id="r1")])
        [row] = json.loads(server.last("POST", "/items").content)
        assert "first_observed_at" in row


class TestSupabaseRuns:
    async def test_start_run_posts_shared_id(self, server, store):
        run = await store.start_run("shared")

        assert run.id == "shared"
        assert server.runs["shared"]["status"] == "active"

    async def test_completion_promotes_server_side(self, server, store):
        await store.start_run("r1")

        run = await store.mark_run_completed("r1", RunStats(items_found=3, items_extracted=2))

        promote = server.last("POST", "/rpc/promote_run_to_current")
        assert json.loads(promote.content) == {"target_run_id": "r1"}
        assert run.status == RunStatus.COMPLETED
        assert run.items_extracted == 2
        assert (await store.get_run_state()).current_run_id == "r1"

    async def test_mark_failed(self, server, store):
        await store.start_run("r1")

        run = await store.mark_run_failed("r1", "auth timeout")

        assert run.status == RunStatus.FAILED
        assert run.error == "auth timeout"

    async def test_promotion_failure_raises_storage_error(self, server, store):
        await store.start_run("r1")
        server.fail_paths.add("/rpc/promote_run_to_current")

        with pytest.raises(StorageError):
            await store.mark_run_completed("r1", RunStats())


class TestSupabaseCleanup:
    async def test_cleanup_calls_server_function(self, server, store):
        server.cleanup_result = {"runs_deleted": 2, "items_deleted": 5}

        result = await store.atomic_cleanup(3)

        request = server.last("POST", "/rpc/safe_cleanup_old_runs")
        assert json.loads(request.content) == {"keep_count": 3}
        assert result.runs_deleted == 2
        assert result.items_deleted == 5

    async def test_cleanup_failure_raises_storage_error(self, server, store):
        server.fail_paths.add("/rpc/safe_cleanup_old_runs")

        with pytest.raises(StorageError):
            await store.atomic_cleanup(3)


class TestSupabaseMalformedResponses:
    async def test_malformed_cleanup_response_raises_storage_error(self, server, store):
        server.garbled_paths.add("/rpc/safe_cleanup_old_runs")

        with pytest.raises(StorageError, match="malformed response"):
            await store.atomic_cleanup(3)

    async def test_malformed_run_list_raises_storage_error(self, server, store):
        server.garbled_paths.add("/runs")

        with pytest.raises(StorageError, match="malformed response"):
            await store.list_runs()
