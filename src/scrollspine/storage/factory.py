"""Storage factory - build the store list and coordinator from settings.

Usage:
    from scrollspine.core.config import get_settings
    from scrollspine.storage import create_coordinator

    # Local JSON only
    coordinator = create_coordinator(get_settings(output_path="items.json"))

    # JSON primary plus SQLite and Supabase mirrors
    coordinator = create_coordinator(
        get_settings(
            sqlite_path="items.db",
            supabase_url="https://example.supabase.co",
            supabase_key="...",
        )
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scrollspine.storage.buffer import FlushPolicy
from scrollspine.storage.coordinator import RunCoordinator
from scrollspine.storage.json_file import JsonFileStore
from scrollspine.storage.sqlite import SQLiteStore
from scrollspine.storage.supabase import SupabaseStore

if TYPE_CHECKING:
    from scrollspine.core.config import Settings
    from scrollspine.protocols.store import DurableStore

logger = logging.getLogger(__name__)


def create_stores(settings: Settings) -> list[DurableStore]:
    """Create the configured stores, local JSON primary first.

    Example:
        >>> from scrollspine.core.config import Settings
        >>> from scrollspine.storage.factory import create_stores
        >>> [s.name for s in create_stores(Settings(sqlite_path="items.db"))]
        ['json', 'sqlite']
    """
    stores: list[DurableStore] = [JsonFileStore(settings.output_path)]

    if settings.sqlite_path is not None:
        stores.append(SQLiteStore(settings.sqlite_path))

    if settings.supabase_configured:
        assert settings.supabase_url is not None and settings.supabase_key is not None
        stores.append(
            SupabaseStore(
                settings.supabase_url,
                settings.supabase_key,
                items_table=settings.supabase_items_table,
                runs_table=settings.supabase_runs_table,
            )
        )
        logger.info("Storage: Supabase backend enabled")

    return stores


def create_coordinator(settings: Settings) -> RunCoordinator:
    """Create a RunCoordinator over create_stores(settings)."""
    return RunCoordinator(
        create_stores(settings),
        keep_runs=settings.keep_runs,
        flush_policy=FlushPolicy(interval=settings.flush_interval, max_pending=settings.flush_max_pending),
        reconcile=settings.reconcile_on_start,
    )
