"""
ScrollSpine - Enumeration and consistency engine for infinite-scroll panels.

ScrollSpine walks a dynamically-loading web panel until it is exhausted,
extracts every item with its full label, and writes the results through a
run-scoped protocol that never loses previously confirmed records.

Key Features:
- Scroll-stability detection for lazily loaded lists
- Authentication recovery with human escalation
- Buffered, run-scoped writes across JSON, SQLite and Supabase stores
- Retention of the last N completed runs
- Cancellable watch mode with per-pass deltas and notifications

Quick Start:
    >>> from scrollspine import MemoryStore, RunCoordinator, Settings, run_one_pass
    >>> coordinator = RunCoordinator([MemoryStore()])
    >>> # await coordinator.initialize()
    >>> # outcome = await run_one_pass(session, coordinator, settings=Settings())

Architecture:
    Stores: MemoryStore, JsonFileStore, SQLiteStore, SupabaseStore
    Browser: PlaywrightSession behind the BrowserSession protocol
    Notifiers: ConsoleNotifier, TelegramNotifier
"""

# Auth
from scrollspine.auth.detector import AuthState
from scrollspine.auth.recovery import AuthGate

# Browser
from scrollspine.browser.lease import SessionLease

# Core
from scrollspine.core.cancellation import CancellationToken, install_signal_handlers
from scrollspine.core.config import Settings, get_settings
from scrollspine.core.exceptions import (
    AuthRecoveryError,
    BrowserError,
    ConfigurationError,
    ElementNotFoundError,
    ExtractionError,
    NavigationError,
    ScrollSpineError,
    SessionDeadError,
    StorageError,
    StorageFlushError,
    StoreUnavailableError,
)
from scrollspine.core.logging import configure_logging

# Models
from scrollspine.models.item import ItemRecord
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats, RunStatus
from scrollspine.models.scan import PassFailed, PassOk, PassOutcome, ScanResult

# Notifiers
from scrollspine.notifier.console import ConsoleNotifier
from scrollspine.notifier.dispatcher import NotificationDispatcher, create_notifier
from scrollspine.notifier.telegram import TelegramNotifier

# Progress reporting
from scrollspine.protocols.progress import (
    NullProgressReporter,
    ProgressEvent,
    ProgressReporter,
    ProgressStage,
)
from scrollspine.reporter.simple import SimpleProgressReporter

# Storage
from scrollspine.storage.coordinator import CompletionReport, RunCoordinator
from scrollspine.storage.factory import create_coordinator, create_stores
from scrollspine.storage.json_file import JsonFileStore
from scrollspine.storage.memory import MemoryStore
from scrollspine.storage.sqlite import SQLiteStore
from scrollspine.storage.supabase import SupabaseStore

# Watch mode
from scrollspine.watch.interval import format_interval, parse_interval
from scrollspine.watch.scheduler import WatchScheduler, run_one_pass

__version__ = "0.1.0"

__all__ = [
    # Models
    "ItemRecord",
    "Run",
    "RunState",
    "RunStats",
    "RunStatus",
    "CleanupResult",
    "ScanResult",
    "PassOk",
    "PassFailed",
    "PassOutcome",
    # Core
    "Settings",
    "get_settings",
    "CancellationToken",
    "install_signal_handlers",
    "configure_logging",
    # Exceptions
    "ScrollSpineError",
    "ConfigurationError",
    "BrowserError",
    "ElementNotFoundError",
    "NavigationError",
    "SessionDeadError",
    "ExtractionError",
    "AuthRecoveryError",
    "StorageError",
    "StorageFlushError",
    "StoreUnavailableError",
    # Auth
    "AuthGate",
    "AuthState",
    # Browser
    "SessionLease",
    # Storage
    "CompletionReport",
    "RunCoordinator",
    "MemoryStore",
    "JsonFileStore",
    "SQLiteStore",
    "SupabaseStore",
    "create_coordinator",
    "create_stores",
    # Notifiers
    "ConsoleNotifier",
    "TelegramNotifier",
    "NotificationDispatcher",
    "create_notifier",
    # Progress
    "ProgressReporter",
    "ProgressEvent",
    "ProgressStage",
    "NullProgressReporter",
    "SimpleProgressReporter",
    # Watch
    "WatchScheduler",
    "run_one_pass",
    "parse_interval",
    "format_interval",
]
