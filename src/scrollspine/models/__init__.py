"""Pydantic models for ScrollSpine."""

from scrollspine.models.base import ScrollSpineModel, utc_now
from scrollspine.models.item import ItemRecord, merge_into
from scrollspine.models.run import CleanupResult, Run, RunState, RunStats, RunStatus
from scrollspine.models.scan import PassFailed, PassOk, PassOutcome, ScanResult

__all__ = [
    # Base
    "ScrollSpineModel",
    "utc_now",
    # Items
    "ItemRecord",
    "merge_into",
    # Runs
    "CleanupResult",
    "Run",
    "RunState",
    "RunStats",
    "RunStatus",
    # Pass results
    "PassFailed",
    "PassOk",
    "PassOutcome",
    "ScanResult",
]
