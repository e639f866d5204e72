"""Tests for the scrollspine CLI."""

from __future__ import annotations

import asyncio
import logging

import pytest
from typer.testing import CliRunner

from scrollspine import __version__
from scrollspine.cli import app
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import RunStats
from scrollspine.storage.json_file import JsonFileStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("scrollspine")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    logger.handlers[:], logger.level, logger.propagate = saved


async def _seed(path) -> None:
    store = JsonFileStore(path)
    await store.initialize()
    run = await store.start_run()
    await store.upsert([ItemRecord.observed("g-p-a1", "Alpha"), ItemRecord.observed("g-p-b2", "Beta")])
    await store.mark_run_completed(run.id, RunStats(items_found=2, items_extracted=2))
    failed = await store.start_run()
    await store.mark_run_failed(failed.id, "timeout")
    await store.close()


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"scrollspine {__version__}" in result.output


class TestStatus:
    def test_shows_items_and_runs(self, tmp_path):
        path = tmp_path / "items.json"
        asyncio.run(_seed(path))

        result = runner.invoke(app, ["status", "-o", str(path)])

        assert result.exit_code == 0
        assert "Items: 2" in result.output
        assert "completed" in result.output
        assert "failed" in result.output

    def test_empty_store(self, tmp_path):
        result = runner.invoke(app, ["status", "-o", str(tmp_path / "missing.json")])

        assert result.exit_code == 0
        assert "Items: 0" in result.output
        assert "Current run: -" in result.output

    def test_corrupt_store_is_reported_and_left_in_place(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["status", "-o", str(path)])

        assert result.exit_code == 1
        assert "Cannot read store" in result.output
        assert path.read_text(encoding="utf-8") == "{not json"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["items.json"]

    def test_unsupported_version_is_left_in_place(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text('{"version": 99, "items": []}', encoding="utf-8")

        result = runner.invoke(app, ["status", "-o", str(path)])

        assert result.exit_code == 1
        assert sorted(p.name for p in tmp_path.iterdir()) == ["items.json"]


class TestArgumentErrors:
    def test_unknown_log_format(self, tmp_path):
        result = runner.invoke(app, ["run", "--log-format", "xml", "-o", str(tmp_path / "items.json")])
        assert result.exit_code == 2

    def test_watch_interval_below_minimum(self, tmp_path):
        result = runner.invoke(app, ["watch", "--interval", "10s", "-o", str(tmp_path / "items.json")])

        assert result.exit_code == 2
        assert "below the minimum" in result.output

    def test_watch_interval_malformed(self, tmp_path):
        result = runner.invoke(app, ["watch", "--interval", "soon", "-o", str(tmp_path / "items.json")])

        assert result.exit_code == 2
        assert "Invalid interval format" in result.output
