"""Durable stores and the run coordinator."""

from scrollspine.storage.buffer import FlushPolicy, WriteBuffer
from scrollspine.storage.coordinator import CompletionReport, RunCoordinator
from scrollspine.storage.factory import create_coordinator, create_stores
from scrollspine.storage.json_file import JsonFileStore
from scrollspine.storage.memory import MemoryStore
from scrollspine.storage.retention import RetentionPlan, plan_retention
from scrollspine.storage.sqlite import SQLiteStore
from scrollspine.storage.supabase import SupabaseStore

__all__ = [
    # Coordination
    "CompletionReport",
    "FlushPolicy",
    "RunCoordinator",
    "WriteBuffer",
    # Stores
    "JsonFileStore",
    "MemoryStore",
    "SQLiteStore",
    "SupabaseStore",
    # Retention
    "RetentionPlan",
    "plan_retention",
    # Factory
    "create_coordinator",
    "create_stores",
]
