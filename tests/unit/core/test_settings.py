"""Tests for scrollspine.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from scrollspine.core.config import Settings, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.keep_runs == 3
        assert settings.watch_interval == "15m"
        assert settings.notify_cooldown_minutes == 30
        assert settings.output_path == Path("items.json")
        assert not settings.supabase_configured

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCROLLSPINE_KEEP_RUNS", "5")
        monkeypatch.setenv("SCROLLSPINE_WATCH_INTERVAL", "1h")
        monkeypatch.setenv("SCROLLSPINE_LOGIN_URL_MARKERS", '["login.example.com"]')

        settings = Settings()

        assert settings.keep_runs == 5
        assert settings.watch_interval == "1h"
        assert settings.login_url_markers == ["login.example.com"]

    def test_overrides_beat_environment(self, monkeypatch):
        monkeypatch.setenv("SCROLLSPINE_KEEP_RUNS", "5")
        assert get_settings(keep_runs=7).keep_runs == 7

    @pytest.mark.parametrize(
        "field,value",
        [("keep_runs", 0), ("stability_threshold", 0), ("page_load_timeout", 0), ("min_watch_interval", 0.5)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_supabase_configured(self):
        assert Settings(supabase_url="https://x.supabase.co", supabase_key="k").supabase_configured
        assert not Settings(supabase_url="https://x.supabase.co").supabase_configured
