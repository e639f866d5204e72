"""ScrollSpine configuration.

Application settings loaded from environment variables with SCROLLSPINE_ prefix.

Example:
    >>> from scrollspine.core.config import get_settings
    >>> settings = get_settings(log_level="DEBUG")
    >>> settings.log_level
    'DEBUG'
    >>> settings.keep_runs
    3
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path.home() / ".scrollspine"


class Settings(BaseSettings):
    """Application settings.

    Loads from environment variables with SCROLLSPINE_ prefix. All durations
    are in seconds.

    Example:
        >>> from scrollspine.core.config import Settings
        >>> s = Settings(stability_threshold=3)
        >>> s.stability_threshold
        3
        >>> s.auth_recovery_timeout
        300.0
    """

    model_config = SettingsConfigDict(
        env_prefix="SCROLLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Target application
    target_url: str = Field(default="https://chatgpt.com", description="Page hosting the item panel")
    login_url_markers: list[str] = Field(
        default_factory=lambda: ["auth0.openai.com", "/auth/login", "login.openai.com"],
        description="URL fragments that identify a login page",
    )
    target_domain_markers: list[str] = Field(
        default_factory=lambda: ["chatgpt.com"],
        description="URL fragments that identify the target domain",
    )

    # Browser
    user_data_dir: Path = Field(default=BASE_DIR / "browser-data", description="Persistent browser profile")
    headful: bool = Field(default=False, description="Force a visible browser window")
    viewport_width: int = Field(default=1280, ge=320)
    viewport_height: int = Field(default=800, ge=240)

    # Timeouts
    page_load_timeout: float = Field(default=30.0, gt=0)
    element_wait_timeout: float = Field(default=5.0, gt=0)
    tooltip_timeout: float = Field(default=2.0, gt=0)
    auth_recovery_timeout: float = Field(default=300.0, gt=0)
    auth_poll_interval: float = Field(default=2.0, gt=0)
    auth_settle_delay: float = Field(default=3.0, ge=0)

    # Delays
    between_hovers_delay: float = Field(default=0.1, ge=0)
    after_scroll_delay: float = Field(default=1.0, ge=0)
    menu_animation_delay: float = Field(default=0.5, ge=0)
    page_settle_delay: float = Field(default=2.0, ge=0)

    # Scrolling
    scroll_delta: int = Field(default=400, gt=0)
    stability_threshold: int = Field(default=5, ge=1)
    max_scroll_iterations: int = Field(default=100, ge=1)

    # Storage
    output_path: Path = Field(default=Path("items.json"), description="Local JSON store")
    sqlite_path: Path | None = Field(default=None, description="Optional SQLite store")
    flush_interval: float = Field(default=5.0, ge=0, description="Debounce between buffered flushes")
    flush_max_pending: int = Field(default=500, ge=1)
    keep_runs: int = Field(default=3, ge=1, description="Completed runs kept by retention")
    reconcile_on_start: bool = Field(default=True)

    # Supabase (optional)
    supabase_url: str | None = Field(default=None)
    supabase_key: str | None = Field(default=None)
    supabase_items_table: str = Field(default="items")
    supabase_runs_table: str = Field(default="runs")

    # Watch mode
    watch_interval: str = Field(default="15m", description="Interval between passes (e.g. 30s, 15m, 1h)")
    min_watch_interval: float = Field(default=60.0, ge=1.0)

    # Notifications
    notify_cooldown_minutes: float = Field(default=30.0, ge=0)
    telegram_bot_token: str | None = Field(default=None)
    telegram_chat_id: str | None = Field(default=None)
    console_notifications: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="plain", description="Log format: plain or rich")

    @property
    def supabase_configured(self) -> bool:
        """True when both Supabase URL and key are set."""
        return bool(self.supabase_url and self.supabase_key)


def get_settings(**overrides: Any) -> Settings:
    """Get settings with optional overrides.

    Example:
        >>> from scrollspine.core.config import get_settings
        >>> s = get_settings(flush_interval=0.5)
        >>> s.flush_interval
        0.5
    """
    return Settings(**overrides)
