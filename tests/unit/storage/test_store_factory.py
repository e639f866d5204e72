"""Tests for scrollspine.storage.factory."""

from __future__ import annotations

from scrollspine.core.config import Settings
from scrollspine.storage.factory import create_coordinator, create_stores
from scrollspine.storage.json_file import JsonFileStore
from scrollspine.storage.sqlite import SQLiteStore
from scrollspine.storage.supabase import SupabaseStore


class TestCreateStores:
    def test_json_only_by_default(self, tmp_path):
        stores = create_stores(Settings(output_path=tmp_path / "items.json"))

        assert len(stores) == 1
        assert isinstance(stores[0], JsonFileStore)
        assert stores[0].path == tmp_path / "items.json"

    def test_json_primary_then_mirrors(self, tmp_path):
        settings = Settings(
            output_path=tmp_path / "items.json",
            sqlite_path=tmp_path / "items.db",
            supabase_url="https://example.supabase.co",
            supabase_key="service-key",
        )

        stores = create_stores(settings)

        assert [type(s) for s in stores] == [JsonFileStore, SQLiteStore, SupabaseStore]

    def test_supabase_needs_url_and_key(self, tmp_path):
        stores = create_stores(Settings(output_path=tmp_path / "items.json", supabase_url="https://example.supabase.co"))
        assert [s.name for s in stores] == ["json"]


class TestCreateCoordinator:
    def test_policy_from_settings(self, tmp_path):
        coordinator = create_coordinator(
            Settings(output_path=tmp_path / "items.json", keep_runs=5, flush_interval=2.5, flush_max_pending=50)
        )

        assert coordinator.keep_runs == 5
        assert coordinator.flush_policy.interval == 2.5
        assert coordinator.flush_policy.max_pending == 50
        assert coordinator.primary.name == "json"
